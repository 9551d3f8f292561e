# utils/graph.py
from typing import Any, Dict, Iterable, List, Optional, Tuple

import networkx as nx

from flowgraph.structural.schema import ANNOTATION_TYPES


def raw_nodes(candidate: Any) -> List[Dict[str, Any]]:
    """
    Node dicts of an untrusted document (or a FlowSpec).
    Entries without a string ``id`` and ``type`` are ignored.
    """
    doc = _as_document(candidate)
    items = doc.get("nodes")
    if not isinstance(items, list):
        return []
    return [
        n for n in items
        if isinstance(n, dict) and isinstance(n.get("id"), str) and isinstance(n.get("type"), str)
    ]


def raw_edges(candidate: Any) -> List[Dict[str, Any]]:
    """Edge dicts carrying ``id``, ``from`` and ``to`` keys."""
    doc = _as_document(candidate)
    items = doc.get("edges")
    if not isinstance(items, list):
        return []
    return [e for e in items if isinstance(e, dict) and all(k in e for k in ("id", "from", "to"))]


def _as_document(candidate: Any) -> Dict[str, Any]:
    if isinstance(candidate, dict):
        return candidate
    to_dict = getattr(candidate, "to_dict", None)
    if callable(to_dict):
        doc = to_dict()
        return doc if isinstance(doc, dict) else {}
    return {}


def build_flow_graph(
    nodes: Iterable[Dict[str, Any]],
    edges: Iterable[Dict[str, Any]],
    keep_dangling: bool = False,
) -> nx.MultiDiGraph:
    """
    Build a MultiDiGraph from raw node/edge dicts.

    Nodes carry their ``type``; edges are keyed by their position in the
    edge list (so duplicates stay distinct) and carry ``id`` and ``label``.
    Edges touching unknown node ids are skipped, unless ``keep_dangling``:
    then the missing endpoint becomes a placeholder node with ``dangling=True``
    so out-degrees still count the edge.
    """
    G = nx.MultiDiGraph()
    for n in nodes:
        G.add_node(n["id"], type=n["type"])
    for idx, e in enumerate(edges):
        src, tgt = e.get("from"), e.get("to")
        if not (isinstance(src, str) and isinstance(tgt, str)):
            continue
        if src not in G or tgt not in G:
            if not keep_dangling:
                continue
            for end in (src, tgt):
                if end not in G:
                    G.add_node(end, type=None, dangling=True)
        G.add_edge(src, tgt, key=idx, id=e.get("id"), label=e.get("label"))
    return G


def out_edges_ordered(G: nx.MultiDiGraph, node: str) -> List[Tuple[str, str, int, Dict[str, Any]]]:
    """Outgoing edges of ``node`` in document order."""
    return sorted(G.out_edges(node, keys=True, data=True), key=lambda e: e[2])


def in_edges_ordered(G: nx.MultiDiGraph, node: str) -> List[Tuple[str, str, int, Dict[str, Any]]]:
    return sorted(G.in_edges(node, keys=True, data=True), key=lambda e: e[2])


def reachable_from(G: nx.MultiDiGraph, source: str) -> set:
    """``source`` plus everything downstream of it."""
    return {source} | nx.descendants(G, source)


def reaching_any(G: nx.MultiDiGraph, targets: Iterable[str]) -> set:
    """Every node with a directed path into one of ``targets`` (targets included)."""
    found = set()
    for t in targets:
        if t in found:
            continue
        found.add(t)
        found |= nx.ancestors(G, t)
    return found


def execution_graph(flow) -> nx.MultiDiGraph:
    """Graph of a typed FlowSpec without annotation nodes."""
    nodes = [{"id": n.id, "type": n.type} for n in flow.nodes if n.type not in ANNOTATION_TYPES]
    edges = [{"id": e.id, "from": e.from_id, "to": e.to_id, "label": e.label} for e in flow.edges]
    return build_flow_graph(nodes, edges)


def topological_order(G: nx.MultiDiGraph, first: Optional[str] = None) -> List[str]:
    """
    Deterministic topological order: ``first`` (the trigger) leads, ties are
    broken by node id. Cyclic graphs fall back to insertion order.
    """
    def sort_key(nid):
        return (0 if nid == first else 1, nid)

    try:
        return list(nx.lexicographical_topological_sort(G, key=sort_key))
    except nx.NetworkXUnfeasible:
        return list(G.nodes)


def longest_path_depths(G: nx.MultiDiGraph, order: List[str]) -> Dict[str, int]:
    """
    Depth of each node as its longest-path distance from a root, following
    ``order``. Back edges (possible only on the cyclic fallback) are ignored.
    """
    index = {nid: i for i, nid in enumerate(order)}
    depth = {nid: 0 for nid in order}
    for nid in order:
        for src, _, _ in G.in_edges(nid, keys=True):
            if index[src] < index[nid]:
                depth[nid] = max(depth[nid], depth[src] + 1)
    return depth
