import pytest

from flowgraph.structural.checker import validate_graph
from flowgraph.structural.model import Delay, MessageNode, SplitNode, TriggerNode, WaitNode
from flowgraph.structural.spec import validate_flow_spec
from flowgraph.templates.fixtures import fixture, purchase_welcome_series, welcome_series
from flowgraph.templates.packages import (
    PLANS,
    Counts,
    LinearBlueprint,
    SplitBlueprint,
    build_linear_flow,
    build_split_flow,
    expand_package_template,
    interleave,
)


@pytest.mark.parametrize("key, count", [("core-foundation", 6), ("growth-engine", 8), ("full-system", 9)])
def test_plan_sizes(key, count):
    package = expand_package_template(key)
    assert package.template_key == key
    assert len(package.flows) == count
    assert len({f.id for f in package.flows}) == count


@pytest.mark.parametrize("key", list(PLANS))
def test_every_template_flow_is_valid(key):
    for flow in expand_package_template(key).flows:
        assert flow.source.mode == "template"
        assert flow.source.template_key == key
        result = validate_graph(flow)
        assert result.valid, f"{flow.id}: {result.format_errors()}"
        # re-validating the canonical document is a no-op
        assert validate_flow_spec(flow.to_dict()) == flow


@pytest.mark.parametrize("key", list(PLANS))
def test_cart_mirrors_checkout(key):
    package = expand_package_template(key)
    assert len(package.mirrors) == 1
    link = package.mirrors[0]
    base = package.flow(link.mirrors_flow_id)
    mirror = package.flow(link.flow_id)
    assert "checkout" in base.id and "cart" in mirror.id
    assert len(mirror.nodes) == len(base.nodes)
    assert len(mirror.edges) == len(base.edges)
    assert all(n.id.startswith(mirror.id) for n in mirror.nodes)
    assert all(e.id.startswith(mirror.id) and base.id not in e.id for e in mirror.edges)
    assert mirror.trigger.event != base.trigger.event
    assert link.to_dict() == {"flowId": mirror.id, "mirrorsFlowId": base.id}


def test_default_delay_override():
    package = expand_package_template("core-foundation", default_delay=Delay(3, "hours"))
    for flow in package.flows:
        assert (flow.default_delay.value, flow.default_delay.unit) == (3, "hours")
        for node in flow.nodes:
            if isinstance(node, WaitNode):
                assert node.duration == Delay(3, "hours")


def test_template_default_delay_is_one_day():
    flow = expand_package_template("core-foundation").flow("core_email_welcome")
    waits = [n for n in flow.nodes if isinstance(n, WaitNode)]
    assert waits and all(w.duration == Delay(1, "days") for w in waits)


def test_unknown_plan():
    with pytest.raises(KeyError):
        expand_package_template("enterprise")


@pytest.mark.parametrize(
    "email, sms, expected",
    [
        (3, 0, ["email", "email", "email"]),
        (0, 2, ["sms", "sms"]),
        (2, 2, ["email", "sms", "email", "sms"]),
        (3, 2, ["email", "sms", "email", "sms", "email"]),
        (0, 0, []),
    ],
)
def test_interleave(email, sms, expected):
    assert interleave(email, sms) == expected


def test_linear_flow_shape():
    bp = LinearBlueprint("demo", "Post-Purchase", "When someone places an order", Counts(email=2, sms=1))
    flow = build_linear_flow(bp, Delay(1, "days"), "core-foundation")
    kinds = [n.type for n in flow.nodes]
    assert kinds == ["trigger", "message", "wait", "message", "wait", "message", "outcome"]
    assert flow.channels == ["email", "sms"]
    assert isinstance(flow.node("demo_trigger"), TriggerNode)
    first = flow.node("demo_msg_1")
    assert isinstance(first, MessageNode)
    assert first.title == "Order Confirmed!"
    assert first.strategy is not None
    assert flow.edge("demo_e_demo_trigger_to_demo_msg_1") is not None


def test_split_flow_with_empty_branch():
    bp = SplitBlueprint(
        "demo", "Winback", "When customer is inactive", "Has purchase history?",
        yes=Counts(email=2), no=Counts(),
    )
    flow = build_split_flow(bp, Delay(1, "days"), "growth-engine")
    assert validate_graph(flow).valid
    split = flow.node("demo_split")
    assert isinstance(split, SplitNode)
    no_edge = next(e for e in flow.outgoing("demo_split") if e.label == "No")
    assert no_edge.to_id == "demo_outcome_no"
    yes_edge = next(e for e in flow.outgoing("demo_split") if e.label == "Yes")
    assert yes_edge.to_id == "demo_yes_msg_1"
    assert flow.node("demo_yes_msg_1").title == "We Miss You! (Yes)"


def test_fixtures_are_fresh_copies():
    a = welcome_series()
    a["nodes"].clear()
    assert len(welcome_series()["nodes"]) == 14
    assert len(fixture("welcome-series")["edges"]) == 14
    doc = purchase_welcome_series()
    assert (len(doc["nodes"]), len(doc["edges"])) == (16, 15)
    with pytest.raises(KeyError):
        fixture("nope")
