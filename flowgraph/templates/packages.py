# flowgraph/templates/packages.py
"""Plan templates: expand a plan key into ready-to-edit flows.

Plans are static tables of blueprints. Linear blueprints become
trigger -> message/wait chain -> outcome; split blueprints become
trigger -> split -> one interleaved lane per branch -> one outcome per branch.
Mirror blueprints copy an already built flow under a new id and trigger.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from flowgraph.structural.model import Delay, FlowSpec
from flowgraph.structural.spec import validate_flow_spec
from flowgraph.utils.logger import get_logger

logger = get_logger("templates")

DEFAULT_TEMPLATE_DELAY = Delay(1, "days")

MESSAGING_FOCI = (
    "Introduction & Engagement",
    "Service Highlights & Value Proposition",
    "Re-engagement & Conversion",
    "Final Urgency, Stock & Scarcity",
)

STRATEGY_BY_FLOW_TYPE: Dict[str, Tuple[str, str]] = {
    "Email Welcome": (
        "Create a strong first impression and set expectations for the relationship.",
        "Introduce brand values and guide subscribers toward their first purchase.",
    ),
    "SMS Welcome": (
        "Establish the SMS channel as high-value and time-sensitive.",
        "Drive immediate engagement with concise, mobile-optimized messaging.",
    ),
    "Checkout Abandonment": (
        "Recover abandoned checkouts by addressing friction and urgency.",
        "Reinforce product value and offer support to complete the purchase.",
    ),
    "Cart Abandonment": (
        "Remind shoppers of items left in cart and drive them back to purchase.",
        "Use social proof and scarcity to motivate action.",
    ),
    "Browse Abandonment": (
        "Re-engage browsers with personalized product recommendations.",
        "Build consideration through reviews, comparisons, and value messaging.",
    ),
    "Site Abandonment": (
        "Recapture visitors who left without browsing products.",
        "Highlight bestsellers and trending items to spark interest.",
    ),
    "Post-Purchase": (
        "Build loyalty and increase customer lifetime value after purchase.",
        "Drive reviews, referrals, and repeat purchases through cross-sell.",
    ),
    "Winback": (
        "Re-engage lapsed customers and rekindle interest in the brand.",
        "Use escalating incentives and emotional appeals to win them back.",
    ),
    "Sunset": (
        "Clean the list by identifying truly disengaged subscribers.",
        "Give a final chance to re-engage before suppression.",
    ),
}

TITLE_TEMPLATES: Dict[str, Tuple[str, ...]] = {
    "Email Welcome": ("Welcome!", "Our Story", "Why Customers Love Us", "Exclusive Benefits", "Your Special Offer"),
    "SMS Welcome": ("Welcome! Quick Intro", "Don't Miss Out", "Exclusive for You"),
    "Checkout Abandonment": ("Complete Your Order", "Still Thinking?", "Your Cart is Waiting", "Final Reminder"),
    "Cart Abandonment": ("You Left Something Behind", "Still Interested?", "Your Items Are Going Fast", "Last Chance"),
    "Browse Abandonment": ("We Noticed You Looking", "Curated Just for You", "Trending Now", "See What's New"),
    "Site Abandonment": ("Welcome Back", "Discover Our Bestsellers", "What You're Missing"),
    "Post-Purchase": ("Order Confirmed!", "How's Your Purchase?", "You Might Also Like", "Leave a Review"),
    "Winback": ("We Miss You!", "A Lot Has Changed", "Come Back for Something Special"),
    "Sunset": ("Are You Still There?", "Last Chance to Stay", "We're Saying Goodbye"),
}


# ---------- blueprints ----------

@dataclass(frozen=True)
class Counts:
    email: int = 0
    sms: int = 0


@dataclass(frozen=True)
class LinearBlueprint:
    id: str
    name: str
    trigger_event: str
    counts: Counts


@dataclass(frozen=True)
class SplitBlueprint:
    id: str
    name: str
    trigger_event: str
    condition: str
    yes: Counts
    no: Counts
    yes_label: str = "Yes"
    no_label: str = "No"


@dataclass(frozen=True)
class MirrorBlueprint:
    id: str
    name: str
    trigger_event: str
    mirrors: str


Blueprint = Union[LinearBlueprint, SplitBlueprint, MirrorBlueprint]


@dataclass(frozen=True)
class PlanDefinition:
    key: str
    name: str
    tagline: str
    blueprints: Tuple[Blueprint, ...]


@dataclass
class MirrorLink:
    flow_id: str
    mirrors_flow_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"flowId": self.flow_id, "mirrorsFlowId": self.mirrors_flow_id}


@dataclass
class ExpandedPackage:
    template_key: str
    flows: List[FlowSpec] = field(default_factory=list)
    mirrors: List[MirrorLink] = field(default_factory=list)

    def flow(self, flow_id: str) -> Optional[FlowSpec]:
        return next((f for f in self.flows if f.id == flow_id), None)


_SUBSCRIBE = "When someone subscribes to the email list"
_SMS_OPT_IN = "When someone opts in to SMS updates"
_CHECKOUT = "When someone starts checkout but does not complete purchase"
_CART = "When someone adds to cart but does not purchase"
_BROWSE = "When someone browses products but does not add to cart"
_SITE = "When someone visits site and exits without product view"
_ORDER = "When someone places an order"
_INACTIVE = "When customer is inactive for a defined window"
_ORDERED = "Has placed an order?"
_HISTORY = "Has purchase history?"

PLANS: Dict[str, PlanDefinition] = {
    "core-foundation": PlanDefinition(
        key="core-foundation",
        name="Core Foundation",
        tagline="For brands under $1M/year",
        blueprints=(
            LinearBlueprint("core_email_welcome", "Email Welcome", _SUBSCRIBE, Counts(email=3)),
            LinearBlueprint("core_sms_welcome", "SMS Welcome", _SMS_OPT_IN, Counts(sms=2)),
            LinearBlueprint("core_checkout_abandonment", "Checkout Abandonment", _CHECKOUT, Counts(2, 2)),
            MirrorBlueprint("core_cart_abandonment", "Cart Abandonment", _CART, "core_checkout_abandonment"),
            LinearBlueprint(
                "core_browse_abandonment", "Browse Abandonment",
                "When someone views products but does not add to cart", Counts(2, 2),
            ),
            LinearBlueprint("core_post_purchase", "Post-Purchase", _ORDER, Counts(1, 1)),
        ),
    ),
    "growth-engine": PlanDefinition(
        key="growth-engine",
        name="Growth Engine",
        tagline="For brands scaling past $1M/year",
        blueprints=(
            SplitBlueprint("growth_email_welcome", "Email Welcome", _SUBSCRIBE, _ORDERED, Counts(email=1), Counts(email=3)),
            SplitBlueprint("growth_sms_welcome", "SMS Welcome", _SMS_OPT_IN, _ORDERED, Counts(sms=1), Counts(sms=2)),
            SplitBlueprint("growth_checkout_abandonment", "Checkout Abandonment", _CHECKOUT, _HISTORY, Counts(3, 2), Counts(3, 2)),
            MirrorBlueprint("growth_cart_abandonment", "Cart Abandonment", _CART, "growth_checkout_abandonment"),
            SplitBlueprint("growth_browse_abandonment", "Browse Abandonment", _BROWSE, _HISTORY, Counts(3, 2), Counts(3, 2)),
            LinearBlueprint("growth_site_abandonment", "Site Abandonment", _SITE, Counts(email=2)),
            SplitBlueprint("growth_post_purchase", "Post-Purchase", _ORDER, _HISTORY, Counts(2, 1), Counts(1, 1)),
            LinearBlueprint("growth_winback", "Winback", _INACTIVE, Counts(email=2)),
        ),
    ),
    "full-system": PlanDefinition(
        key="full-system",
        name="Full System",
        tagline="For established brands running every lifecycle stage",
        blueprints=(
            SplitBlueprint("full_email_welcome", "Email Welcome", _SUBSCRIBE, _ORDERED, Counts(email=2), Counts(email=4)),
            SplitBlueprint("full_sms_welcome", "SMS Welcome", _SMS_OPT_IN, _ORDERED, Counts(sms=1), Counts(sms=3)),
            SplitBlueprint("full_checkout_abandonment", "Checkout Abandonment", _CHECKOUT, _HISTORY, Counts(4, 2), Counts(4, 2)),
            MirrorBlueprint("full_cart_abandonment", "Cart Abandonment", _CART, "full_checkout_abandonment"),
            SplitBlueprint("full_browse_abandonment", "Browse Abandonment", _BROWSE, _HISTORY, Counts(4, 2), Counts(4, 2)),
            LinearBlueprint("full_site_abandonment", "Site Abandonment", _SITE, Counts(email=3)),
            SplitBlueprint("full_post_purchase", "Post-Purchase", _ORDER, _HISTORY, Counts(3, 2), Counts(3, 1)),
            SplitBlueprint("full_winback", "Winback", _INACTIVE, _HISTORY, Counts(email=3), Counts(email=3)),
            LinearBlueprint(
                "full_sunset", "Sunset", "When subscriber remains inactive after winback", Counts(email=3),
            ),
        ),
    ),
}


# ---------- message content ----------

def interleave(email_count: int, sms_count: int) -> List[str]:
    """Spread SMS evenly among emails, emails first: E, E, S, E, S ..."""
    seq: List[str] = []
    ei = si = 0
    for _ in range(email_count + sms_count):
        if ei < email_count and (si >= sms_count or ei / email_count <= si / sms_count):
            seq.append("email")
            ei += 1
        else:
            seq.append("sms")
            si += 1
    return seq


def _message_title(flow_name: str, step: int, channel: str, branch_label: Optional[str]) -> str:
    suffix = f" ({branch_label})" if branch_label else ""
    titles = TITLE_TEMPLATES.get(flow_name, ())
    if step - 1 < len(titles):
        return f"{titles[step - 1]}{suffix}"
    return f"{'Email' if channel == 'email' else 'SMS'} {step}{suffix}"


def _message_node(
    node_id: str,
    channel: str,
    step: int,
    total: int,
    flow_name: str,
    branch_label: Optional[str] = None,
) -> Dict:
    focus = MESSAGING_FOCI[min(step - 1, len(MESSAGING_FOCI) - 1)]
    include_discount = step >= max(2, total - 1)
    label_part = f" ({branch_label})" if branch_label else ""
    node = {
        "id": node_id,
        "type": "message",
        "channel": channel,
        "title": _message_title(flow_name, step, channel, branch_label),
        "stepIndex": step,
        "copyHint": (
            f"{'Email' if channel == 'email' else 'SMS'} step {step}{label_part}: "
            "reinforce brand value and move subscribers toward conversion."
        ),
        "discountCode": (
            {"included": True, "description": "Include an incentive to drive urgency"}
            if include_discount else {"included": False}
        ),
        "messagingFocus": focus,
        "smartSending": step > 1,
        "utmLinks": True,
        "filterConditions": "NA",
        "implementationNotes": (
            "First touch in this sequence. Set appropriate send timing."
            if step == 1 else f"Step {step} of {total}. Ensure proper delay from previous message."
        ),
    }
    strategy = STRATEGY_BY_FLOW_TYPE.get(flow_name)
    if strategy:
        if step == 1:
            primary, secondary = strategy
        else:
            primary = (
                f"Step {step}: Continue building on the {flow_name.lower()} strategy "
                f"through {focus.lower()}."
            )
            secondary = (
                "Leverage previous touchpoints to "
                + ("drive urgency and conversion." if include_discount else "deepen engagement and trust.")
            )
        node["strategy"] = {"primaryFocus": primary, "secondaryFocus": secondary}
    return node


# ---------- flow builders ----------

def _edge(flow_id: str, src: str, dst: str, label: Optional[str] = None) -> Dict:
    edge = {"id": f"{flow_id}_e_{src}_to_{dst}", "from": src, "to": dst}
    if label:
        edge["label"] = label
    return edge


def _lane(
    nodes: List[Dict],
    edges: List[Dict],
    flow_id: str,
    prefix: str,
    start_id: str,
    sequence: List[str],
    delay: Delay,
    flow_name: str,
    entry_label: Optional[str] = None,
    branch_label: Optional[str] = None,
) -> str:
    """Append message/wait chain after ``start_id``; returns the last node id."""
    previous = start_id
    for i, channel in enumerate(sequence):
        step = i + 1
        message_id = f"{prefix}_msg_{step}"
        nodes.append(_message_node(message_id, channel, step, len(sequence), flow_name, branch_label))
        edges.append(_edge(flow_id, previous, message_id, entry_label if previous == start_id else None))
        previous = message_id
        if step < len(sequence):
            wait_id = f"{prefix}_wait_{step}"
            nodes.append({"id": wait_id, "type": "wait", "duration": delay.to_dict()})
            edges.append(_edge(flow_id, previous, wait_id))
            previous = wait_id
    return previous


def _channels(*counts: Counts) -> List[str]:
    channels = []
    if any(c.email for c in counts):
        channels.append("email")
    if any(c.sms for c in counts):
        channels.append("sms")
    return channels


def _envelope(flow_id: str, name: str, channels: List[str], delay: Delay, template_key: str) -> Dict:
    return {
        "id": flow_id,
        "name": name,
        "source": {"mode": "template", "templateKey": template_key},
        "channels": channels,
        "defaults": {"delay": delay.to_dict()},
    }


def build_linear_flow(bp: LinearBlueprint, delay: Delay, template_key: str) -> FlowSpec:
    trigger_id = f"{bp.id}_trigger"
    nodes: List[Dict] = [{"id": trigger_id, "type": "trigger", "title": "Trigger", "event": bp.trigger_event}]
    edges: List[Dict] = []
    last = _lane(nodes, edges, bp.id, bp.id, trigger_id, interleave(bp.counts.email, bp.counts.sms), delay, bp.name)
    outcome_id = f"{bp.id}_outcome"
    nodes.append({"id": outcome_id, "type": "outcome", "title": "End", "result": "Flow completed"})
    edges.append(_edge(bp.id, last, outcome_id))
    doc = _envelope(bp.id, bp.name, _channels(bp.counts), delay, template_key)
    doc.update(nodes=nodes, edges=edges)
    return validate_flow_spec(doc)


def build_split_flow(bp: SplitBlueprint, delay: Delay, template_key: str) -> FlowSpec:
    trigger_id = f"{bp.id}_trigger"
    split_id = f"{bp.id}_split"
    nodes: List[Dict] = [
        {"id": trigger_id, "type": "trigger", "title": "Trigger", "event": bp.trigger_event},
        {
            "id": split_id, "type": "split", "title": "Conditional Split",
            "condition": bp.condition, "labels": {"yes": bp.yes_label, "no": bp.no_label},
        },
    ]
    edges: List[Dict] = [_edge(bp.id, trigger_id, split_id)]

    for key, label, counts in (("yes", bp.yes_label, bp.yes), ("no", bp.no_label, bp.no)):
        sequence = interleave(counts.email, counts.sms)
        last = _lane(
            nodes, edges, bp.id, f"{bp.id}_{key}", split_id, sequence, delay, bp.name,
            entry_label=label, branch_label=label,
        )
        outcome_id = f"{bp.id}_outcome_{key}"
        nodes.append({"id": outcome_id, "type": "outcome", "title": "End", "result": f"{label} path completed"})
        # An empty branch goes straight from the split to its outcome
        edges.append(_edge(bp.id, last, outcome_id, label if last == split_id else None))

    doc = _envelope(bp.id, bp.name, _channels(bp.yes, bp.no), delay, template_key)
    doc.update(nodes=nodes, edges=edges)
    return validate_flow_spec(doc)


def mirror_flow(base: FlowSpec, bp: MirrorBlueprint) -> FlowSpec:
    """Copy ``base`` under ``bp.id``: ids re-prefixed, trigger event replaced."""
    prefix = re.compile(rf"^{re.escape(base.id)}")
    doc = base.to_dict()
    id_map = {}
    for node in doc["nodes"]:
        new_id = prefix.sub(bp.id, node["id"])
        id_map[node["id"]] = new_id
        node["id"] = new_id
        if node["type"] == "trigger":
            node["event"] = bp.trigger_event
    for edge in doc["edges"]:
        edge["from"] = id_map.get(edge["from"], edge["from"])
        edge["to"] = id_map.get(edge["to"], edge["to"])
        edge["id"] = _edge(bp.id, edge["from"], edge["to"])["id"]
    positions = (doc.get("ui") or {}).get("nodePositions")
    if positions:
        doc["ui"]["nodePositions"] = {id_map.get(k, k): v for k, v in positions.items()}
    doc.update(id=bp.id, name=bp.name)
    return validate_flow_spec(doc)


def expand_package_template(template_key: str, default_delay: Optional[Delay] = None) -> ExpandedPackage:
    """
    Build every flow of a plan. All flows carry
    ``source = {mode: template, templateKey: template_key}`` and share one wait
    duration (``default_delay``, 1 day unless given).
    """
    plan = PLANS.get(template_key)
    if plan is None:
        raise KeyError(f"Unknown template key: {template_key} (expected one of {', '.join(PLANS)})")
    delay = default_delay or DEFAULT_TEMPLATE_DELAY

    package = ExpandedPackage(template_key=plan.key)
    built: Dict[str, FlowSpec] = {}
    for bp in plan.blueprints:
        if isinstance(bp, LinearBlueprint):
            flow = build_linear_flow(bp, delay, plan.key)
        elif isinstance(bp, SplitBlueprint):
            flow = build_split_flow(bp, delay, plan.key)
        else:
            flow = mirror_flow(built[bp.mirrors], bp)
            package.mirrors.append(MirrorLink(flow_id=bp.id, mirrors_flow_id=bp.mirrors))
        built[bp.id] = flow
        package.flows.append(flow)

    logger.debug(f"expanded {plan.key}: {len(package.flows)} flows, {len(package.mirrors)} mirror(s)")
    return package
