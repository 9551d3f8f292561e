# flowgraph/editor/ops.py
"""Copy-on-write edits on a FlowSpec.

Every operation works on a fresh document copy, applies one change and
re-validates the whole result. On failure ``SchemaError`` is raised and the
caller's spec is untouched; on success a new FlowSpec is returned.
"""

from typing import Any, Dict, Iterable, Optional, Union

from flowgraph.structural.model import FlowEdge, FlowNode, FlowSpec
from flowgraph.structural.spec import validate_flow_spec
from flowgraph.utils.logger import get_logger

logger = get_logger("editor")

NodeLike = Union[FlowNode, Dict[str, Any]]


def _draft(spec: FlowSpec) -> Dict[str, Any]:
    # to_dict builds new containers all the way down
    return spec.to_dict()


def _as_dict(obj: Any) -> Dict[str, Any]:
    return dict(obj) if isinstance(obj, dict) else obj.to_dict()


def next_id(prefix: str, existing: Iterable[str]) -> str:
    """First free ``<prefix>_<n>`` id, counting from 1."""
    taken = set(existing)
    index = 1
    while f"{prefix}_{index}" in taken:
        index += 1
    return f"{prefix}_{index}"


def _require(items, item_id: str, kind: str) -> None:
    if not any(item.get("id") == item_id for item in items):
        raise KeyError(f"Unknown {kind} id: {item_id}")


def add_node(spec: FlowSpec, node: NodeLike) -> FlowSpec:
    draft = _draft(spec)
    draft["nodes"].append(_as_dict(node))
    return validate_flow_spec(draft)


def remove_node(spec: FlowSpec, node_id: str) -> FlowSpec:
    """Remove a node, its incident edges and its saved position."""
    draft = _draft(spec)
    _require(draft["nodes"], node_id, "node")
    draft["nodes"] = [n for n in draft["nodes"] if n["id"] != node_id]
    draft["edges"] = [e for e in draft["edges"] if node_id not in (e["from"], e["to"])]
    positions = (draft.get("ui") or {}).get("nodePositions")
    if positions:
        positions.pop(node_id, None)
    return validate_flow_spec(draft)


def add_edge(
    spec: FlowSpec,
    from_id: str,
    to_id: str,
    label: Optional[str] = None,
    edge_id: Optional[str] = None,
) -> FlowSpec:
    """Connect two nodes; ``edge_id`` defaults to the first free ``edge_<n>``."""
    draft = _draft(spec)
    edge = FlowEdge(
        id=edge_id or next_id("edge", (e["id"] for e in draft["edges"])),
        from_id=from_id,
        to_id=to_id,
        label=label,
    )
    draft["edges"].append(edge.to_dict())
    return validate_flow_spec(draft)


def remove_edge(spec: FlowSpec, edge_id: str) -> FlowSpec:
    draft = _draft(spec)
    _require(draft["edges"], edge_id, "edge")
    draft["edges"] = [e for e in draft["edges"] if e["id"] != edge_id]
    return validate_flow_spec(draft)


def update_edge_label(spec: FlowSpec, edge_id: str, label: Optional[str]) -> FlowSpec:
    """Relabel an edge; a blank label removes it."""
    draft = _draft(spec)
    _require(draft["edges"], edge_id, "edge")
    cleaned = (label or "").strip()
    for e in draft["edges"]:
        if e["id"] != edge_id:
            continue
        if cleaned:
            e["label"] = cleaned
        else:
            e.pop("label", None)
    return validate_flow_spec(draft)


def update_node_title(spec: FlowSpec, node_id: str, title: str) -> FlowSpec:
    draft = _draft(spec)
    _require(draft["nodes"], node_id, "node")
    for n in draft["nodes"]:
        if n["id"] != node_id:
            continue
        if "title" in n:
            n["title"] = title
        else:
            logger.warning(f"node {node_id} ({n['type']}) has no title; left unchanged")
    return validate_flow_spec(draft)
