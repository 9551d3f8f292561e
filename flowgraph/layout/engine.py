# flowgraph/layout/engine.py
"""Deterministic top-down layout for flow graphs.

Rows come from the longest-path depth of each node. Columns come from a tidy
tree over "owner" edges (a node is owned by its deepest parent): each owned
subtree gets its own horizontal interval, wide enough for its widest row, so
boxes from different subtrees can never intersect. Annotation nodes (note,
strategy) sit beside their anchor inside the anchor's interval.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from flowgraph.structural.model import FlowSpec, SplitNode, StrategyNode, node_title
from flowgraph.structural.schema import ANNOTATION_TYPES
from flowgraph.utils.graph import (
    execution_graph,
    in_edges_ordered,
    longest_path_depths,
    topological_order,
)
from flowgraph.utils.logger import get_logger

logger = get_logger("layout")


@dataclass(frozen=True)
class NodeSize:
    width: float
    height: float


NODE_SIZES: Dict[str, NodeSize] = {
    "trigger": NodeSize(280, 94),
    "profileFilter": NodeSize(280, 100),
    "split": NodeSize(280, 100),
    "wait": NodeSize(280, 48),
    "message": NodeSize(280, 185),
    "outcome": NodeSize(72, 22),
    "merge": NodeSize(120, 36),
    "note": NodeSize(320, 160),
    "strategy": NodeSize(320, 200),
}

# A row holding a split gets this many row spacings below it
SPLIT_GAP_FACTOR = 2.25
# Outcomes drop this fraction of a row spacing inside their row
OUTCOME_DROP_FACTOR = 0.75


@dataclass(frozen=True)
class LayoutOptions:
    row_spacing: float = 44
    column_gap: float = 60
    annotation_gap: float = 60
    padding_x: float = 120
    padding_y: float = 80
    # node id -> {"x", "y"} (or anything with .x/.y); used verbatim
    position_overrides: Optional[Mapping[str, Any]] = None
    # node kind -> {"width", "height"} (or a NodeSize)
    node_size_overrides: Optional[Mapping[str, Any]] = None
    # also honor flow.ui.nodePositions (options win on conflict)
    use_ui_positions: bool = True

    def size_for(self, kind: str) -> NodeSize:
        override = (self.node_size_overrides or {}).get(kind)
        if override is None:
            return NODE_SIZES[kind]
        if isinstance(override, NodeSize):
            return override
        if isinstance(override, Mapping):
            return NodeSize(float(override["width"]), float(override["height"]))
        width, height = override
        return NodeSize(float(width), float(height))


@dataclass
class PositionedNode:
    id: str
    type: str
    title: str
    x: float
    y: float
    width: float
    height: float
    depth: int

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id, "type": self.type, "title": self.title,
            "x": self.x, "y": self.y, "width": self.width, "height": self.height,
            "depth": self.depth,
        }


@dataclass
class PositionedEdge:
    id: str
    from_id: str
    to_id: str
    label: Optional[str] = None
    points: List[Tuple[float, float]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "from": self.from_id, "to": self.to_id}
        if self.label is not None:
            out["label"] = self.label
        out["points"] = [{"x": x, "y": y} for x, y in self.points]
        return out


@dataclass
class LayoutResult:
    nodes: List[PositionedNode] = field(default_factory=list)
    edges: List[PositionedEdge] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[PositionedNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {"nodes": [n.to_dict() for n in self.nodes], "edges": [e.to_dict() for e in self.edges]}


def _label_score(label: Optional[str]) -> int:
    normalized = (label or "").strip().lower()
    if normalized == "yes":
        return 0
    if normalized == "no":
        return 1
    return 2


def _xy(value: Any) -> Tuple[float, float]:
    if isinstance(value, Mapping):
        return float(value["x"]), float(value["y"])
    if hasattr(value, "x") and hasattr(value, "y"):
        return float(value.x), float(value.y)
    x, y = value
    return float(x), float(y)


class _TreeLayout:
    """Working state for one ``build_layout`` call."""

    def __init__(self, flow: FlowSpec, opts: LayoutOptions):
        self.flow = flow
        self.opts = opts
        self.by_id = {n.id: n for n in flow.nodes}
        self.main_ids = [n.id for n in flow.nodes if n.type not in ANNOTATION_TYPES]
        self.annotation_ids = [n.id for n in flow.nodes if n.type in ANNOTATION_TYPES]

        self.G = execution_graph(flow)
        trigger = flow.trigger
        self.order = topological_order(self.G, trigger.id if trigger else None)
        self.index = {nid: i for i, nid in enumerate(self.order)}
        self.depth = longest_path_depths(self.G, self.order)
        self.column_width = max((self.size(nid).width for nid in self.main_ids), default=0)

        self.owner: Dict[str, Optional[str]] = {}
        self.rank: Dict[str, Tuple[int, int]] = {}
        self.children: Dict[str, List[str]] = {nid: [] for nid in self.order}
        self._build_tree()

        self.anchor: Dict[str, Optional[str]] = {}
        self.left_notes: Dict[str, List[str]] = {nid: [] for nid in self.order}
        self.right_notes: Dict[str, List[str]] = {nid: [] for nid in self.order}
        self._attach_annotations()

        self.subtree_width: Dict[str, float] = {}
        self.center: Dict[str, float] = {}

    def size(self, nid: str) -> NodeSize:
        return self.opts.size_for(self.by_id[nid].type)

    # ---------- tree ----------
    def _build_tree(self) -> None:
        for nid in self.order:
            parents = [
                (src, data) for src, _, _, data in in_edges_ordered(self.G, nid)
                if self.index[src] < self.index[nid]
            ]
            if not parents:
                self.owner[nid] = None
                continue
            # deepest parent; ties go to the one earlier in topological order
            owner, edge = min(parents, key=lambda p: (-self.depth[p[0]], self.index[p[0]]))
            self.owner[nid] = owner
            self.rank[nid] = (self._branch_rank(owner, edge.get("label")), self.index[nid])
            self.children[owner].append(nid)
        for kids in self.children.values():
            kids.sort(key=lambda c: self.rank[c])

    def _branch_rank(self, parent: str, label: Optional[str]) -> int:
        node = self.by_id[parent]
        if isinstance(node, SplitNode):
            declared = [lbl.strip().lower() for lbl in node.labels.ordered()]
            normalized = (label or "").strip().lower()
            return declared.index(normalized) if normalized in declared else len(declared)
        return _label_score(label)

    # ---------- annotations ----------
    def _attach_annotations(self) -> None:
        main = set(self.order)
        for aid in self.annotation_ids:
            anchor = None
            for e in self.flow.edges:
                if e.from_id == aid and e.to_id in main:
                    anchor = e.to_id
                elif e.to_id == aid and e.from_id in main:
                    anchor = e.from_id
                if anchor is not None:
                    break
            self.anchor[aid] = anchor
            if anchor is None:
                continue
            if self._annotation_side(aid, anchor) < 0:
                self.left_notes[anchor].append(aid)
            else:
                self.right_notes[anchor].append(aid)

    def _annotation_side(self, aid: str, anchor: str) -> int:
        """-1 for left, 1 for right: the outside of the nearest split branch."""
        node = self.by_id[aid]
        if isinstance(node, StrategyNode) and node.branch_label:
            return -1 if node.branch_label == "yes" else 1
        child, parent = anchor, self.owner.get(anchor)
        while parent is not None:
            if isinstance(self.by_id[parent], SplitNode):
                return -1 if self.rank[child][0] == 0 else 1
            child, parent = parent, self.owner.get(parent)
        return 1

    def _side_extent(self, notes: List[str]) -> float:
        return sum(self.opts.annotation_gap + self.size(a).width for a in notes)

    def own_half_width(self, nid: str) -> float:
        half = self.size(nid).width / 2
        return max(half + self._side_extent(self.left_notes[nid]), half + self._side_extent(self.right_notes[nid]))

    # ---------- horizontal placement ----------
    def measure(self, nid: str) -> float:
        kids = self.children[nid]
        block = sum(self.measure(c) for c in kids) + self.opts.column_gap * max(len(kids) - 1, 0)
        width = max(2 * self.own_half_width(nid), self.column_width, block)
        self.subtree_width[nid] = width
        return width

    def place(self, nid: str, left: float) -> None:
        width = self.subtree_width[nid]
        cx = left + width / 2
        self.center[nid] = cx
        kids = self.children[nid]
        if not kids:
            return
        block = sum(self.subtree_width[c] for c in kids) + self.opts.column_gap * (len(kids) - 1)
        cursor = cx - block / 2
        for c in kids:
            self.place(c, cursor)
            cursor += self.subtree_width[c] + self.opts.column_gap

    def place_roots(self) -> float:
        """Lay roots side by side; returns the right edge of the last one."""
        cursor = 0.0
        placed = False
        for nid in self.order:
            if self.owner[nid] is not None:
                continue
            if placed:
                cursor += self.opts.column_gap
            self.measure(nid)
            self.place(nid, cursor)
            cursor += self.subtree_width[nid]
            placed = True
        return cursor

    # ---------- vertical placement ----------
    def _drop(self, nid: str) -> float:
        if self.by_id[nid].type == "outcome":
            return round(self.opts.row_spacing * OUTCOME_DROP_FACTOR)
        return 0

    def row_tops(self) -> Tuple[Dict[int, float], float]:
        """Top y of each depth row, plus the y just below the last row's gap."""
        rows: Dict[int, List[str]] = {}
        for nid in self.order:
            rows.setdefault(self.depth[nid], []).append(nid)
        tops: Dict[int, float] = {}
        y = 0.0
        for d in sorted(rows):
            tops[d] = y
            height = 0.0
            for nid in rows[d]:
                notes = self.left_notes[nid] + self.right_notes[nid]
                tallest = max([self.size(nid).height] + [self.size(a).height for a in notes])
                height = max(height, self._drop(nid) + tallest)
            has_split = any(self.by_id[nid].type == "split" for nid in rows[d])
            y += height + self.opts.row_spacing * (SPLIT_GAP_FACTOR if has_split else 1)
        return tops, y

    # ---------- assembly ----------
    def run(self) -> List[PositionedNode]:
        right_edge = self.place_roots()
        tops, bottom = self.row_tops()
        placed: Dict[str, PositionedNode] = {}

        for nid in self.order:
            size = self.size(nid)
            node = self.by_id[nid]
            placed[nid] = PositionedNode(
                id=nid, type=node.type, title=node_title(node),
                x=self.center[nid] - size.width / 2,
                y=tops[self.depth[nid]] + self._drop(nid),
                width=size.width, height=size.height, depth=self.depth[nid],
            )

        for anchor_id in self.order:
            base = placed[anchor_id]
            edge_x = base.x
            for aid in self.left_notes[anchor_id]:
                size = self.size(aid)
                edge_x -= self.opts.annotation_gap + size.width
                placed[aid] = self._annotation(aid, edge_x, base)
            edge_x = base.x + base.width
            for aid in self.right_notes[anchor_id]:
                size = self.size(aid)
                placed[aid] = self._annotation(aid, edge_x + self.opts.annotation_gap, base)
                edge_x += self.opts.annotation_gap + size.width

        # Unanchored annotations share one extra row below everything else
        cursor = 0.0
        last_depth = max(self.depth.values(), default=-1)
        for aid in self.annotation_ids:
            if self.anchor[aid] is not None:
                continue
            size = self.size(aid)
            node = self.by_id[aid]
            placed[aid] = PositionedNode(
                id=aid, type=node.type, title=node_title(node), x=cursor, y=bottom,
                width=size.width, height=size.height, depth=last_depth + 1,
            )
            cursor += size.width + self.opts.column_gap

        logger.debug(f"layout: {len(placed)} nodes, width {max(right_edge, cursor):.0f}, height {bottom:.0f}")
        # Output follows document order
        return [placed[n.id] for n in self.flow.nodes]

    def _annotation(self, aid: str, x: float, anchor: PositionedNode) -> PositionedNode:
        size = self.size(aid)
        node = self.by_id[aid]
        return PositionedNode(
            id=aid, type=node.type, title=node_title(node), x=x, y=anchor.y,
            width=size.width, height=size.height, depth=anchor.depth,
        )


def _route(src: PositionedNode, dst: PositionedNode) -> List[Tuple[float, float]]:
    if src.type in ANNOTATION_TYPES or dst.type in ANNOTATION_TYPES:
        # horizontal, between the facing sides
        if src.center_x <= dst.center_x:
            return [(src.x + src.width, src.y + src.height / 2), (dst.x, dst.y + dst.height / 2)]
        return [(src.x, src.y + src.height / 2), (dst.x + dst.width, dst.y + dst.height / 2)]

    start = (src.x + src.width / 2, src.y + src.height)
    end = (dst.x + dst.width / 2, dst.y)
    if abs(start[0] - end[0]) < 1:
        return [start, end]
    middle_y = start[1] + (end[1] - start[1]) / 2
    return [start, (start[0], middle_y), (end[0], middle_y), end]


def build_layout(flow: FlowSpec, options: Optional[LayoutOptions] = None) -> LayoutResult:
    """
    Compute positions for every node and polyline points for every edge.

    Pure: the same flow and options always give the same result. Structurally
    invalid flows (run ``validate_graph`` first) still terminate, but their
    geometry is unspecified.
    """
    opts = options or LayoutOptions()
    if not flow.nodes:
        return LayoutResult()

    nodes = _TreeLayout(flow, opts).run()

    if nodes:
        min_x = min(n.x for n in nodes)
        min_y = min(n.y for n in nodes)
        for n in nodes:
            n.x = n.x - min_x + opts.padding_x
            n.y = n.y - min_y + opts.padding_y

    overrides: Dict[str, Tuple[float, float]] = {}
    if opts.use_ui_positions and flow.ui is not None and flow.ui.node_positions:
        overrides.update({k: _xy(v) for k, v in flow.ui.node_positions.items()})
    overrides.update({k: _xy(v) for k, v in (opts.position_overrides or {}).items()})
    for n in nodes:
        if n.id in overrides:
            n.x, n.y = overrides[n.id]

    by_id = {n.id: n for n in nodes}
    edges = []
    for e in flow.edges:
        src, dst = by_id.get(e.from_id), by_id.get(e.to_id)
        points = _route(src, dst) if src is not None and dst is not None else []
        edges.append(PositionedEdge(id=e.id, from_id=e.from_id, to_id=e.to_id, label=e.label, points=points))

    return LayoutResult(nodes=nodes, edges=edges)
