import pytest

from flowgraph.structural.model import FlowSpec, MessageNode, SplitLabels, WaitNode
from flowgraph.structural.spec import (
    SchemaError,
    format_delay,
    validate_flow_spec,
    validate_flow_spec_safe,
)


def _paths(result):
    return [issue.path for issue in result.issues]


def test_welcome_fixture_validates(welcome_spec):
    assert isinstance(welcome_spec, FlowSpec)
    assert welcome_spec.id == "welcome-series-email-5"
    assert len(welcome_spec.nodes) == 14
    assert welcome_spec.trigger.id == "trigger_signup"


def test_validation_is_idempotent(welcome_doc):
    once = validate_flow_spec(welcome_doc)
    twice = validate_flow_spec(once.to_dict())
    assert twice == once
    assert twice.to_dict() == once.to_dict()


def test_validation_is_deterministic(welcome_doc):
    assert validate_flow_spec(welcome_doc).to_dict() == validate_flow_spec(welcome_doc).to_dict()


def test_accepts_existing_flowspec(linear_spec):
    assert validate_flow_spec(linear_spec) == linear_spec


def test_defaults_are_applied(linear_doc):
    spec = validate_flow_spec(linear_doc)
    assert spec.source.mode == "manual"
    assert spec.source.template_key is None
    assert spec.default_delay.value == 2
    assert spec.default_delay.unit == "days"

    doc = spec.to_dict()
    assert doc["source"] == {"mode": "manual"}
    assert doc["defaults"] == {"delay": {"value": 2, "unit": "days"}}


def test_partial_default_delay(linear_doc):
    linear_doc["defaults"] = {"delay": {"unit": "hours"}}
    spec = validate_flow_spec(linear_doc)
    assert (spec.default_delay.value, spec.default_delay.unit) == (2, "hours")


def test_split_labels_default_per_key(welcome_spec):
    split_final = welcome_spec.node("split_final")
    assert split_final.labels == SplitLabels("Yes", "No")
    assert welcome_spec.to_dict()["nodes"][11]["labels"] == {"yes": "Yes", "no": "No"}


def test_unknown_keys_are_dropped(linear_doc):
    linear_doc["color"] = "blue"
    linear_doc["nodes"][1]["sparkle"] = True
    doc = validate_flow_spec(linear_doc).to_dict()
    assert "color" not in doc
    assert "sparkle" not in doc["nodes"][1]


def test_message_fields_round_trip_to_camel_case(purchase_spec):
    node = purchase_spec.node("email_welcome")
    assert isinstance(node, MessageNode)
    assert node.smart_sending is False
    assert node.strategy.primary_focus.startswith("Create a strong first impression")
    raw = node.to_dict()
    assert raw["smartSending"] is False
    assert raw["discountCode"] == {"included": False}
    assert "primaryFocus" in raw["strategy"]


def test_channel_mismatch_is_rejected(linear_doc):
    linear_doc["channels"] = ["sms"]
    result = validate_flow_spec_safe(linear_doc)
    assert not result.success
    assert result.spec is None
    assert "nodes.1.channel" in _paths(result)
    assert "nodes.3.channel" in _paths(result)

    with pytest.raises(SchemaError) as exc:
        validate_flow_spec(linear_doc)
    assert any("not present in flow.channels" in i.message for i in exc.value.issues)


@pytest.mark.parametrize("value", [0, -1, 1.5, True, "2"])
def test_invalid_wait_duration_rejected(linear_doc, value):
    linear_doc["nodes"][2]["duration"]["value"] = value
    result = validate_flow_spec_safe(linear_doc)
    assert not result.success
    assert "nodes.2.duration.value" in _paths(result)


def test_integral_float_duration_accepted(linear_doc):
    linear_doc["nodes"][2]["duration"]["value"] = 2.0
    spec = validate_flow_spec(linear_doc)
    wait = spec.node("wait_1")
    assert isinstance(wait, WaitNode)
    assert wait.duration.value == 2
    assert isinstance(wait.duration.value, int)


def test_invalid_wait_unit_rejected(linear_doc):
    linear_doc["nodes"][2]["duration"]["unit"] = "weeks"
    result = validate_flow_spec_safe(linear_doc)
    assert "nodes.2.duration.unit" in _paths(result)


def test_missing_required_field_path(linear_doc):
    del linear_doc["nodes"][1]["title"]
    result = validate_flow_spec_safe(linear_doc)
    issue = next(i for i in result.issues if i.path == "nodes.1.title")
    assert issue.message == "nodes.1.title is required."


def test_bad_slug_reported(linear_doc):
    linear_doc["id"] = "has spaces"
    result = validate_flow_spec_safe(linear_doc)
    issue = next(i for i in result.issues if i.path == "id")
    assert "alphanumeric, underscore, or dash" in issue.message


def test_all_issues_collected_in_one_pass(linear_doc):
    del linear_doc["name"]
    linear_doc["nodes"][2]["duration"]["value"] = 0
    linear_doc["edges"].append({"id": "e1", "from": "email_2", "to": "nowhere"})
    result = validate_flow_spec_safe(linear_doc)
    paths = _paths(result)
    assert "name" in paths
    assert "nodes.2.duration.value" in paths
    assert "edges.4.id" in paths
    assert "edges.4.to" in paths
    # envelope issues come before cross-field ones
    assert paths.index("name") < paths.index("edges.4.to")


def test_trigger_count_enforced(linear_doc):
    linear_doc["nodes"].append(
        {"id": "trigger_2", "type": "trigger", "title": "Again", "event": "When someone buys"}
    )
    result = validate_flow_spec_safe(linear_doc)
    assert "nodes" in _paths(result)


def test_template_source_requires_key(linear_doc):
    linear_doc["source"] = {"mode": "template"}
    assert "source.templateKey" in _paths(validate_flow_spec_safe(linear_doc))

    linear_doc["source"] = {"mode": "manual", "templateKey": "growth-engine"}
    assert "source.templateKey" in _paths(validate_flow_spec_safe(linear_doc))

    linear_doc["source"] = {"mode": "template", "templateKey": "growth-engine"}
    assert validate_flow_spec(linear_doc).source.template_key == "growth-engine"


def test_split_branch_coverage(welcome_doc):
    welcome_doc["edges"] = [e for e in welcome_doc["edges"] if e["id"] != "e6_no"]
    result = validate_flow_spec_safe(welcome_doc)
    assert any('missing an outgoing edge labeled "No"' in i.message for i in result.issues)


def test_split_labels_must_be_distinct(welcome_doc):
    welcome_doc["nodes"][4]["labels"] = {"yes": "Same", "no": "same"}
    result = validate_flow_spec_safe(welcome_doc)
    assert "nodes.4.labels" in _paths(result)


def test_unknown_position_key(linear_doc):
    linear_doc["ui"] = {"nodePositions": {"ghost": {"x": 1, "y": 2}}}
    result = validate_flow_spec_safe(linear_doc)
    assert "ui.nodePositions.ghost" in _paths(result)


def test_positions_parsed(linear_doc):
    linear_doc["ui"] = {"nodePositions": {"email_1": {"x": 10, "y": 20.5}}}
    spec = validate_flow_spec(linear_doc)
    assert spec.ui.node_positions["email_1"].x == 10
    assert spec.to_dict()["ui"] == {"nodePositions": {"email_1": {"x": 10, "y": 20.5}}}


@pytest.mark.parametrize(
    "candidate",
    [
        None,
        "flow",
        42,
        [],
        {"nodes": "nope"},
        {"nodes": [{"id": ["x"], "type": {"k": 1}}], "edges": [{"id": ["e"], "from": [], "to": {}}]},
    ],
)
def test_garbage_never_crashes_safe_variant(candidate):
    result = validate_flow_spec_safe(candidate)
    assert not result.success
    assert result.issues


def _list_node_id(doc):
    doc["nodes"][1]["id"] = ["x"]


def _dict_node_type(doc):
    doc["nodes"][1]["type"] = {"k": 1}


def _list_edge_id(doc):
    doc["edges"][0]["id"] = ["e1"]


def _dict_edge_ends(doc):
    doc["edges"][0]["from"] = {"id": "trigger"}
    doc["edges"][0]["to"] = ["email_1"]


@pytest.mark.parametrize("mutate", [_list_node_id, _dict_node_type, _list_edge_id, _dict_edge_ends])
def test_unhashable_fields_become_issues(linear_doc, mutate):
    mutate(linear_doc)
    with pytest.raises(SchemaError) as exc:
        validate_flow_spec(linear_doc)
    assert exc.value.issues


def test_blank_split_label_is_rejected(welcome_doc):
    welcome_doc["nodes"][4]["labels"] = {"yes": " ", "no": "No"}
    welcome_doc["edges"] = [e for e in welcome_doc["edges"] if e["id"] != "e5_yes"]
    result = validate_flow_spec_safe(welcome_doc)
    assert not result.success
    blank = [i for i in result.issues if i.path == "nodes.4.labels.yes"]
    assert blank and blank[0].message == "nodes.4.labels.yes must not be blank."
    assert any("missing an outgoing edge" in i.message for i in result.issues)


def test_schema_error_message_joins_issues(linear_doc):
    del linear_doc["name"]
    linear_doc["channels"] = []
    with pytest.raises(SchemaError) as exc:
        validate_flow_spec(linear_doc)
    assert len(exc.value.issues) >= 2
    assert str(exc.value) == "; ".join(i.message for i in exc.value.issues)
    assert isinstance(exc.value, ValueError)


@pytest.mark.parametrize(
    "value, unit, expected",
    [
        (1, "hours", "1 hour"),
        (2, "days", "2 days"),
        (1, "minutes", "1 minute"),
        (30, "minutes", "30 minutes"),
        (1, "days", "1 day"),
        (-2, "days", "-2 days"),
    ],
)
def test_format_delay(value, unit, expected):
    assert format_delay(value, unit) == expected
