# flowgraph/structural/checker.py
"""Whole-graph structural checks for flow documents.

``validate_graph`` accepts anything (a FlowSpec, a raw dict, garbage) and never
raises: every defect comes back as a ``GraphError`` so a repair loop can feed
the list straight back to a generator.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flowgraph.structural.schema import ANNOTATION_TYPES
from flowgraph.utils.graph import (
    build_flow_graph,
    out_edges_ordered,
    raw_edges,
    raw_nodes,
    reachable_from,
    reaching_any,
)
from flowgraph.utils.logger import get_logger

logger = get_logger("checker")

NO_TRIGGER = "NO_TRIGGER"
MULTIPLE_TRIGGERS = "MULTIPLE_TRIGGERS"
UNREACHABLE_NODE = "UNREACHABLE_NODE"
DEAD_END = "DEAD_END"
NO_TERMINAL_PATH = "NO_TERMINAL_PATH"
SPLIT_MISSING_LABEL = "SPLIT_MISSING_LABEL"
SPLIT_EXTRA_EDGE = "SPLIT_EXTRA_EDGE"
SPLIT_SHARED_TARGET = "SPLIT_SHARED_TARGET"
DUPLICATE_EDGE = "DUPLICATE_EDGE"
DANGLING_EDGE = "DANGLING_EDGE"

ERROR_CODES = (
    NO_TRIGGER,
    MULTIPLE_TRIGGERS,
    UNREACHABLE_NODE,
    DEAD_END,
    NO_TERMINAL_PATH,
    SPLIT_MISSING_LABEL,
    SPLIT_EXTRA_EDGE,
    SPLIT_SHARED_TARGET,
    DUPLICATE_EDGE,
    DANGLING_EDGE,
)

# Kinds allowed to have no outgoing edges
TERMINAL_TYPES = frozenset({"outcome"}) | ANNOTATION_TYPES


@dataclass
class GraphError:
    code: str
    message: str
    node_ids: Optional[List[str]] = None
    edge_ids: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.node_ids is not None:
            out["nodeIds"] = list(self.node_ids)
        if self.edge_ids is not None:
            out["edgeIds"] = list(self.edge_ids)
        return out


@dataclass
class GraphValidationResult:
    valid: bool
    errors: List[GraphError] = field(default_factory=list)

    def codes(self) -> List[str]:
        return [e.code for e in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": [e.to_dict() for e in self.errors]}

    def format_errors(self) -> str:
        """One ``[CODE] message`` line per error, for logs and repair prompts."""
        return "\n".join(f"[{e.code}] {e.message}" for e in self.errors)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def split_labels(node: Dict[str, Any]) -> List[str]:
    """Declared branch labels of a raw split node (list or {yes, no} object)."""
    raw = node.get("labels")
    if isinstance(raw, list):
        return [label for label in raw if isinstance(label, str) and label.strip()]
    if isinstance(raw, dict):
        yes = raw.get("yes") if isinstance(raw.get("yes"), str) else "Yes"
        no = raw.get("no") if isinstance(raw.get("no"), str) else "No"
        return [yes, no]
    return ["Yes", "No"]


def _norm(label: Any) -> str:
    return label.strip().lower() if isinstance(label, str) else ""


def validate_graph(candidate: Any) -> GraphValidationResult:
    """
    Check structural soundness of a flow document.

    Checks, all run and collected:
      1) exactly one trigger
      2) no dangling edge endpoints
      3) every non-annotation node reachable from the trigger
      4) no dead ends (non-terminal node without outgoing edges)
      5) every reachable node can reach an outcome (merge/terminal kinds exempt)
      6) split label coverage and extra edges
      7) split branches lead to distinct immediate targets
      8) no duplicate (from, to, label) edges
    """
    nodes = raw_nodes(candidate)
    edges = raw_edges(candidate)
    if not nodes:
        return GraphValidationResult(valid=True, errors=[])

    errors: List[GraphError] = []
    node_ids = {n["id"] for n in nodes}
    # Dangling edges still count as outgoing; traversals only walk known nodes
    G = build_flow_graph(nodes, edges, keep_dangling=True)
    known = G.subgraph(node_ids)

    # 1) Trigger count
    triggers = [n for n in nodes if n["type"] == "trigger"]
    if not triggers:
        errors.append(GraphError(NO_TRIGGER, "Flow must contain exactly one trigger node."))
    elif len(triggers) > 1:
        errors.append(GraphError(
            MULTIPLE_TRIGGERS,
            f"Flow has {len(triggers)} trigger nodes; expected exactly 1.",
            node_ids=[t["id"] for t in triggers],
        ))

    # 2) Dangling edges
    for e in edges:
        missing = [str(end) for end in (e["from"], e["to"]) if not (isinstance(end, str) and end in node_ids)]
        if missing:
            errors.append(GraphError(
                DANGLING_EDGE,
                f"Edge {e['id']} references missing node(s): {', '.join(missing)}.",
                node_ids=missing,
                edge_ids=[e["id"]],
            ))

    # 3) Reachability from the (first) trigger
    trigger_id = triggers[0]["id"] if triggers else None
    reachable = set()
    if trigger_id is not None:
        reachable = reachable_from(known, trigger_id)
        for n in nodes:
            if n["id"] not in reachable and n["type"] not in ANNOTATION_TYPES:
                errors.append(GraphError(
                    UNREACHABLE_NODE,
                    f'Node "{n["id"]}" ({n["type"]}) is not reachable from the trigger.',
                    node_ids=[n["id"]],
                ))

    # 4) Dead ends
    for n in nodes:
        if n["type"] in TERMINAL_TYPES:
            continue
        if G.out_degree(n["id"]) == 0:
            errors.append(GraphError(
                DEAD_END,
                f'Node "{n["id"]}" ({n["type"]}) has no outgoing edges; it is a dead end.',
                node_ids=[n["id"]],
            ))

    # 5) Termination: reverse reachability from every outcome
    if trigger_id is not None:
        outcomes = [n["id"] for n in nodes if n["type"] == "outcome"]
        can_finish = reaching_any(known, outcomes)
        stranded = []
        for n in nodes:
            nid = n["id"]
            if nid in reachable and nid not in can_finish and n["type"] not in TERMINAL_TYPES \
                    and n["type"] != "merge" and nid not in stranded:
                stranded.append(nid)
        if stranded:
            quoted = ", ".join(f'"{nid}"' for nid in stranded)
            errors.append(GraphError(
                NO_TERMINAL_PATH,
                f"Node(s) {quoted} are reachable but no path from them leads to an outcome node.",
                node_ids=stranded,
            ))

    splits = [n for n in nodes if n["type"] == "split"]

    # 6) Split completeness / excess
    for n in splits:
        labels = split_labels(n)
        out = out_edges_ordered(G, n["id"])
        present = {_norm(data.get("label")) for _, _, _, data in out}
        for required in labels:
            if _norm(required) not in present:
                errors.append(GraphError(
                    SPLIT_MISSING_LABEL,
                    f'Split "{n["id"]}" is missing an outgoing edge with label "{required}".',
                    node_ids=[n["id"]],
                ))
        if len(out) > len(labels):
            errors.append(GraphError(
                SPLIT_EXTRA_EDGE,
                f'Split "{n["id"]}" has {len(out)} outgoing edges but only {len(labels)} labels.',
                node_ids=[n["id"]],
                edge_ids=[data.get("id") for _, _, _, data in out],
            ))

    # 7) Split isolation, strict: a shared merge target is rejected too
    for n in splits:
        seen = set()
        for _, target, _, _ in out_edges_ordered(G, n["id"]):
            if target in seen:
                errors.append(GraphError(
                    SPLIT_SHARED_TARGET,
                    f'Split "{n["id"]}" has multiple branches pointing to the same node "{target}". '
                    "Each branch must lead to its own distinct node.",
                    node_ids=[n["id"], target],
                ))
                break
            seen.add(target)

    # 8) Duplicate edges
    seen_keys = set()
    for e in edges:
        key = (str(e["from"]), str(e["to"]), _norm(e.get("label")))
        if key in seen_keys:
            label = e.get("label") if isinstance(e.get("label"), str) else ""
            errors.append(GraphError(
                DUPLICATE_EDGE,
                f'Duplicate edge from "{e["from"]}" to "{e["to"]}" with label "{label}".',
                edge_ids=[e["id"]],
            ))
        seen_keys.add(key)

    result = GraphValidationResult(valid=not errors, errors=errors)
    logger.debug(f"graph check: {len(nodes)} nodes, {len(edges)} edges, {len(errors)} error(s)")
    return result
