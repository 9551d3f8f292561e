# flowgraph/structural/model.py
"""Typed FlowSpec model.

Nodes are a tagged union: one dataclass per ``type``. ``from_dict`` expects a
document that already passed schema validation (see ``structural.spec``);
``to_dict`` produces the canonical camelCase document, with defaults filled
in and unset optionals omitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


def _opt(obj: Any) -> Optional[Dict[str, Any]]:
    return obj.to_dict() if obj is not None else None


@dataclass
class Delay:
    value: int
    unit: str

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "unit": self.unit}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default: Optional["Delay"] = None) -> "Delay":
        default = default or Delay(2, "days")
        value = data.get("value", default.value)
        return cls(value=int(value), unit=data.get("unit", default.unit))


@dataclass
class SplitLabels:
    yes: str = "Yes"
    no: str = "No"

    def ordered(self) -> List[str]:
        """Branch labels in declaration order: first goes left, second right."""
        return [self.yes, self.no]

    def to_dict(self) -> Dict[str, Any]:
        return {"yes": self.yes, "no": self.no}


@dataclass
class Position:
    x: float
    y: float

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y}


# ---------- message annotations ----------

@dataclass
class ObjectiveFocus:
    title: str
    bullets: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "bullets": list(self.bullets)}


@dataclass
class DiscountCode:
    included: bool
    code: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"included": self.included, "code": self.code, "description": self.description})


@dataclass
class ABTest:
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description}


@dataclass
class MessageStrategy:
    primary_focus: str
    secondary_focus: str

    def to_dict(self) -> Dict[str, Any]:
        return {"primaryFocus": self.primary_focus, "secondaryFocus": self.secondary_focus}


# ---------- node kinds ----------

@dataclass
class TriggerNode:
    id: str
    title: str
    event: str
    description: Optional[str] = None
    type: ClassVar[str] = "trigger"

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id, "type": self.type, "title": self.title,
            "event": self.event, "description": self.description,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TriggerNode":
        return cls(id=data["id"], title=data["title"], event=data["event"],
                   description=data.get("description"))


@dataclass
class ProfileFilterNode:
    id: str
    title: str
    filters: List[str]
    type: ClassVar[str] = "profileFilter"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "title": self.title, "filters": list(self.filters)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfileFilterNode":
        return cls(id=data["id"], title=data["title"], filters=list(data["filters"]))


@dataclass
class SplitNode:
    id: str
    title: str
    condition: str
    labels: SplitLabels = field(default_factory=SplitLabels)
    type: ClassVar[str] = "split"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id, "type": self.type, "title": self.title,
            "condition": self.condition, "labels": self.labels.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SplitNode":
        raw = data.get("labels") or {}
        labels = SplitLabels(yes=raw.get("yes", "Yes"), no=raw.get("no", "No"))
        return cls(id=data["id"], title=data["title"], condition=data["condition"], labels=labels)


@dataclass
class WaitNode:
    id: str
    duration: Delay
    type: ClassVar[str] = "wait"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "duration": self.duration.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WaitNode":
        return cls(id=data["id"], duration=Delay.from_dict(data["duration"]))


@dataclass
class MessageNode:
    id: str
    channel: str
    title: str
    step_index: Optional[int] = None
    copy_hint: Optional[str] = None
    objective_focus: Optional[ObjectiveFocus] = None
    tags: Optional[List[str]] = None
    discount_code: Optional[DiscountCode] = None
    ab_test: Optional[ABTest] = None
    messaging_focus: Optional[str] = None
    smart_sending: Optional[bool] = None
    utm_links: Optional[bool] = None
    filter_conditions: Optional[str] = None
    implementation_notes: Optional[str] = None
    strategy: Optional[MessageStrategy] = None
    type: ClassVar[str] = "message"

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "type": self.type,
            "channel": self.channel,
            "title": self.title,
            "stepIndex": self.step_index,
            "copyHint": self.copy_hint,
            "objectiveFocus": _opt(self.objective_focus),
            "tags": list(self.tags) if self.tags is not None else None,
            "discountCode": _opt(self.discount_code),
            "abTest": _opt(self.ab_test),
            "messagingFocus": self.messaging_focus,
            "smartSending": self.smart_sending,
            "utmLinks": self.utm_links,
            "filterConditions": self.filter_conditions,
            "implementationNotes": self.implementation_notes,
            "strategy": _opt(self.strategy),
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageNode":
        focus = data.get("objectiveFocus")
        discount = data.get("discountCode")
        ab_test = data.get("abTest")
        strategy = data.get("strategy")
        step = data.get("stepIndex")
        return cls(
            id=data["id"],
            channel=data["channel"],
            title=data["title"],
            step_index=int(step) if step is not None else None,
            copy_hint=data.get("copyHint"),
            objective_focus=ObjectiveFocus(focus["title"], list(focus["bullets"])) if focus else None,
            tags=list(data["tags"]) if data.get("tags") is not None else None,
            discount_code=DiscountCode(
                included=discount["included"],
                code=discount.get("code"),
                description=discount.get("description"),
            ) if discount else None,
            ab_test=ABTest(ab_test["description"]) if ab_test else None,
            messaging_focus=data.get("messagingFocus"),
            smart_sending=data.get("smartSending"),
            utm_links=data.get("utmLinks"),
            filter_conditions=data.get("filterConditions"),
            implementation_notes=data.get("implementationNotes"),
            strategy=MessageStrategy(strategy["primaryFocus"], strategy["secondaryFocus"]) if strategy else None,
        )


@dataclass
class OutcomeNode:
    id: str
    title: str
    result: str
    type: ClassVar[str] = "outcome"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "title": self.title, "result": self.result}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutcomeNode":
        return cls(id=data["id"], title=data["title"], result=data["result"])


@dataclass
class MergeNode:
    id: str
    type: ClassVar[str] = "merge"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MergeNode":
        return cls(id=data["id"])


@dataclass
class NoteNode:
    id: str
    title: str
    body: str
    type: ClassVar[str] = "note"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "title": self.title, "body": self.body}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NoteNode":
        return cls(id=data["id"], title=data["title"], body=data["body"])


@dataclass
class StrategyNode:
    id: str
    title: str
    primary_focus: str
    secondary_focus: str
    branch_label: Optional[str] = None
    type: ClassVar[str] = "strategy"

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id, "type": self.type, "title": self.title,
            "primaryFocus": self.primary_focus, "secondaryFocus": self.secondary_focus,
            "branchLabel": self.branch_label,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrategyNode":
        return cls(
            id=data["id"],
            title=data["title"],
            primary_focus=data["primaryFocus"],
            secondary_focus=data["secondaryFocus"],
            branch_label=data.get("branchLabel"),
        )


FlowNode = Union[
    TriggerNode,
    ProfileFilterNode,
    SplitNode,
    WaitNode,
    MessageNode,
    OutcomeNode,
    MergeNode,
    NoteNode,
    StrategyNode,
]

NODE_CLASSES = {
    cls.type: cls
    for cls in (
        TriggerNode,
        ProfileFilterNode,
        SplitNode,
        WaitNode,
        MessageNode,
        OutcomeNode,
        MergeNode,
        NoteNode,
        StrategyNode,
    )
}


def node_title(node: FlowNode) -> str:
    """Display title; kinds without one fall back to their type."""
    return getattr(node, "title", None) or node.type


# ---------- edges / document ----------

@dataclass
class FlowEdge:
    id: str
    from_id: str
    to_id: str
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"id": self.id, "from": self.from_id, "to": self.to_id, "label": self.label})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowEdge":
        return cls(id=data["id"], from_id=data["from"], to_id=data["to"], label=data.get("label"))


@dataclass
class FlowSource:
    mode: str = "manual"
    template_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"mode": self.mode, "templateKey": self.template_key})


@dataclass
class FlowUI:
    node_positions: Optional[Dict[str, Position]] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.node_positions is None:
            return {}
        return {"nodePositions": {k: p.to_dict() for k, p in self.node_positions.items()}}


@dataclass
class FlowSpec:
    id: str
    name: str
    channels: List[str]
    nodes: List[FlowNode]
    edges: List[FlowEdge]
    source: FlowSource = field(default_factory=FlowSource)
    default_delay: Delay = field(default_factory=lambda: Delay(2, "days"))
    ui: Optional[FlowUI] = None

    def to_dict(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "source": self.source.to_dict(),
            "channels": list(self.channels),
            "defaults": {"delay": self.default_delay.to_dict()},
        }
        if self.ui is not None:
            doc["ui"] = self.ui.to_dict()
        doc["nodes"] = [node.to_dict() for node in self.nodes]
        doc["edges"] = [edge.to_dict() for edge in self.edges]
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowSpec":
        source = data.get("source") or {"mode": "manual"}
        delay = (data.get("defaults") or {}).get("delay") or {}
        ui = data.get("ui")
        flow_ui = None
        if ui is not None:
            positions = ui.get("nodePositions")
            flow_ui = FlowUI(
                node_positions={k: Position(p["x"], p["y"]) for k, p in positions.items()}
                if positions is not None else None
            )
        return cls(
            id=data["id"],
            name=data["name"],
            source=FlowSource(mode=source["mode"], template_key=source.get("templateKey")),
            channels=list(data["channels"]),
            default_delay=Delay.from_dict(delay),
            ui=flow_ui,
            nodes=[NODE_CLASSES[n["type"]].from_dict(n) for n in data["nodes"]],
            edges=[FlowEdge.from_dict(e) for e in data["edges"]],
        )

    # ---- lookups ----
    def node(self, node_id: str) -> Optional[FlowNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def edge(self, edge_id: str) -> Optional[FlowEdge]:
        return next((e for e in self.edges if e.id == edge_id), None)

    def outgoing(self, node_id: str) -> List[FlowEdge]:
        return [e for e in self.edges if e.from_id == node_id]

    @property
    def trigger(self) -> Optional[TriggerNode]:
        return next((n for n in self.nodes if isinstance(n, TriggerNode)), None)
