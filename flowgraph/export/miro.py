# flowgraph/export/miro.py
"""Miro REST v2 payloads for a laid-out flow.

Builds the JSON bodies for ``POST /boards/{id}/shapes`` (one per node) and
``POST /boards/{id}/connectors`` (one per edge). Sending them, and mapping
created shape ids back into connectors, is left to the caller:
``ConnectorRequest.resolve`` fills in the ids once shapes exist.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flowgraph.layout.engine import LayoutOptions, LayoutResult, build_layout
from flowgraph.structural.model import (
    FlowNode,
    FlowSpec,
    MessageNode,
    NoteNode,
    OutcomeNode,
    ProfileFilterNode,
    SplitNode,
    StrategyNode,
    TriggerNode,
    WaitNode,
    node_title,
)
from flowgraph.structural.schema import ANNOTATION_TYPES
from flowgraph.structural.spec import format_delay
from flowgraph.utils.logger import get_logger

logger = get_logger("miro")

MIRO_API_BASE = "https://api.miro.com/v2"

# Notes render shorter on a board than on the canvas
EXPORT_SIZE_OVERRIDES = {"note": {"width": 320, "height": 110}}

_PAD = "&nbsp;&nbsp;"


def _style(shape, fill, border, align="center", valign="top") -> Dict[str, str]:
    return {"shape": shape, "fillColor": fill, "borderColor": border, "textAlign": align, "textAlignVertical": valign}


SHAPE_STYLES = {
    "trigger": _style("round_rectangle", "#EFF6FF", "#3B82F6"),
    "split": _style("round_rectangle", "#FAF5FF", "#8B5CF6"),
    "wait": _style("round_rectangle", "#F3F4F6", "#9CA3AF", valign="middle"),
    "outcome": _style("round_rectangle", "#ECFDF5", "#10B981"),
    "profileFilter": _style("round_rectangle", "#FFFBEB", "#F59E0B"),
    "merge": _style("circle", "#F8FAFC", "#64748B", valign="middle"),
    "note": _style("rectangle", "#FFF8F0", "#F59E0B", align="left"),
    "strategy:yes": _style("rectangle", "#FFF7ED", "#F97316", align="left"),
    "strategy:no": _style("rectangle", "#EFF6FF", "#3B82F6", align="left"),
    "message:email": _style("round_rectangle", "#FFFFFF", "#6495ED", align="left"),
    "message:sms": _style("round_rectangle", "#FFFFFF", "#4CAF50", align="left"),
}

DEFAULT_STYLE = _style("round_rectangle", "#FFFFFF", "#CBD5E1")


def shape_style(node: FlowNode) -> Dict[str, str]:
    if isinstance(node, MessageNode):
        key = f"message:{node.channel}"
    elif isinstance(node, StrategyNode):
        key = f"strategy:{node.branch_label or 'yes'}"
    else:
        key = node.type
    return dict(SHAPE_STYLES.get(key, DEFAULT_STYLE))


def _esc(text: str) -> str:
    return html.escape(text, quote=True)


def _titled(title: str, body: str) -> str:
    return f"<p><strong>{_esc(title)}</strong></p><br/><p>{_esc(body)}</p>"


def _message_content(node: MessageNode) -> str:
    parts = [
        f"<p><strong>{_esc(node.title)}</strong></p>",
        f"<p>{_PAD}<strong>Message Type:</strong> {'Email' if node.channel == 'email' else 'SMS'}</p>",
        f"<p>{_PAD}<strong>AB Test:</strong> {_esc(node.ab_test.description) if node.ab_test else '...'}</p>",
        f"<p>{_PAD}<strong>Smart Sending:</strong> {'ON' if node.smart_sending else 'OFF'}</p>",
        f"<p>{_PAD}<strong>UTM Links:</strong> {'NO' if node.utm_links is False else 'YES'}</p>",
    ]
    discount = node.discount_code
    if discount is not None and discount.included:
        text = f"[YES] {_esc(discount.code)}" if discount.code else "[YES]"
        if discount.description:
            text += f" - {_esc(discount.description)}"
        parts.append(f"<p>{_PAD}<strong>Discount:</strong> {text}</p>")
    else:
        parts.append(f"<p>{_PAD}<strong>Discount:</strong> No</p>")
    parts.append(f"<p>{_PAD}<strong>Filter conditions:</strong> {_esc(node.filter_conditions or 'NA')}</p>")
    parts.append(f"<p>{_PAD}<strong>Implementation Notes:</strong> {_esc(node.implementation_notes or '...')}</p>")
    if node.strategy is not None:
        parts.append("<br/><p><strong>STRATEGY</strong></p>")
        parts.append(f"<p><strong>PRIMARY FOCUS</strong></p><p>{_esc(node.strategy.primary_focus)}</p>")
        parts.append(f"<p><strong>SECONDARY FOCUS</strong></p><p>{_esc(node.strategy.secondary_focus)}</p>")
    return "<br/>".join(parts)


def node_content(node: FlowNode) -> str:
    """HTML body of the shape for ``node`` (all user text escaped)."""
    if isinstance(node, WaitNode):
        return f"<p><strong>Wait {format_delay(node.duration.value, node.duration.unit)}</strong></p>"
    if isinstance(node, MessageNode):
        return _message_content(node)
    if isinstance(node, SplitNode):
        return _titled(node.title, node.condition)
    if isinstance(node, TriggerNode):
        return _titled(node.title, node.event)
    if isinstance(node, ProfileFilterNode):
        return _titled(node.title, ", ".join(node.filters))
    if isinstance(node, NoteNode):
        return _titled(node.title, node.body)
    if isinstance(node, OutcomeNode):
        return _titled(node.title, node.result)
    if isinstance(node, StrategyNode):
        return (
            "<p><strong>STRATEGY</strong></p><br/>"
            f"<p><strong>PRIMARY FOCUS</strong></p><p>{_esc(node.primary_focus)}</p><br/>"
            f"<p><strong>SECONDARY FOCUS</strong></p><p>{_esc(node.secondary_focus)}</p>"
        )
    return f"<p><strong>{_esc(node_title(node))}</strong></p>"


@dataclass
class ShapeRequest:
    node_id: str
    payload: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"nodeId": self.node_id, "payload": self.payload}


@dataclass
class ConnectorRequest:
    edge_id: str
    from_id: str
    to_id: str
    payload: Dict[str, Any]

    def resolve(self, item_map: Dict[str, str]) -> Dict[str, Any]:
        """Connector body with Miro item ids filled in; KeyError if a shape is missing."""
        body = dict(self.payload)
        body["startItem"] = dict(body["startItem"], id=item_map[self.from_id])
        body["endItem"] = dict(body["endItem"], id=item_map[self.to_id])
        return body

    def to_dict(self) -> Dict[str, Any]:
        return {"edgeId": self.edge_id, "from": self.from_id, "to": self.to_id, "payload": self.payload}


@dataclass
class MiroPayloads:
    shapes: List[ShapeRequest] = field(default_factory=list)
    connectors: List[ConnectorRequest] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shapes": [s.to_dict() for s in self.shapes],
            "connectors": [c.to_dict() for c in self.connectors],
        }


def build_miro_payloads(
    flow: FlowSpec,
    layout: Optional[LayoutResult] = None,
    origin_x: float = 0,
    origin_y: float = 0,
) -> MiroPayloads:
    """
    Shape and connector bodies for ``flow``.

    Miro positions are shape centers, so each node's top-left layout position
    is shifted by half its size, then by the board origin.
    """
    if layout is None:
        layout = build_layout(flow, LayoutOptions(node_size_overrides=EXPORT_SIZE_OVERRIDES))
    by_id = {n.id: n for n in flow.nodes}
    placed = {p.id: p for p in layout.nodes}
    out = MiroPayloads()

    for pos in layout.nodes:
        node = by_id.get(pos.id)
        if node is None:
            continue
        style = shape_style(node)
        out.shapes.append(ShapeRequest(
            node_id=pos.id,
            payload={
                "data": {"content": node_content(node), "shape": style.pop("shape")},
                "style": style,
                "position": {
                    "x": origin_x + pos.x + pos.width / 2,
                    "y": origin_y + pos.y + pos.height / 2,
                },
                "geometry": {"width": pos.width, "height": pos.height},
            },
        ))

    for edge in flow.edges:
        src, dst = placed.get(edge.from_id), placed.get(edge.to_id)
        if src is None or dst is None:
            logger.debug(f"connector {edge.id} skipped: endpoint not laid out")
            continue
        side = src.type in ANNOTATION_TYPES or dst.type in ANNOTATION_TYPES
        start_snap, end_snap = "bottom", "top"
        if side:
            if src.center_x > dst.center_x:
                start_snap, end_snap = "left", "right"
            else:
                start_snap, end_snap = "right", "left"
        payload: Dict[str, Any] = {
            "startItem": {"snapTo": start_snap},
            "endItem": {"snapTo": end_snap},
            "style": {
                "strokeColor": "#F59E0B" if side else "#94A3B8",
                "strokeWidth": 1.5 if side else 2,
                "strokeStyle": "dashed" if side else "normal",
            },
        }
        if edge.label:
            payload["captions"] = [{"content": _esc(edge.label), "position": "50%"}]
        out.connectors.append(ConnectorRequest(edge.id, edge.from_id, edge.to_id, payload))

    return out


def shapes_url(board_id: str) -> str:
    return f"{MIRO_API_BASE}/boards/{board_id}/shapes"


def connectors_url(board_id: str) -> str:
    return f"{MIRO_API_BASE}/boards/{board_id}/connectors"
