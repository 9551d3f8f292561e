# flowgraph/structural/spec.py
"""Field-level validation of FlowSpec documents.

``validate_flow_spec`` never stops at the first problem: JSON Schema errors
(envelope + per-kind node schemas) and cross-field rules are all collected so
callers can show or feed back the complete list.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from jsonschema import Draft7Validator

from flowgraph.structural.model import FlowSpec
from flowgraph.structural.schema import FLOW_SPEC_SCHEMA, NODE_SCHEMAS, SLUG_PATTERN
from flowgraph.utils.logger import get_logger

logger = get_logger("spec")

_DOC_VALIDATOR = Draft7Validator(FLOW_SPEC_SCHEMA)
_NODE_VALIDATORS = {kind: Draft7Validator(schema) for kind, schema in NODE_SCHEMAS.items()}

_REQUIRED_RE = re.compile(r"^'(.+)' is a required property$")

_SINGULAR_UNITS = {"minutes": "minute", "hours": "hour", "days": "day"}


@dataclass
class SchemaIssue:
    """One field-level violation; ``path`` is dotted (``nodes.3.title``)."""

    path: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}


class SchemaError(ValueError):
    """Raised when a candidate document fails field-level validation."""

    def __init__(self, issues: Iterable[SchemaIssue]):
        self.issues: List[SchemaIssue] = list(issues)
        super().__init__("; ".join(issue.message for issue in self.issues) or "Invalid flow spec")


@dataclass
class SchemaResult:
    success: bool
    spec: Optional[FlowSpec] = None
    issues: List[SchemaIssue] = field(default_factory=list)


def _join(parts: Sequence[Any]) -> str:
    return ".".join(str(p) for p in parts)


def _schema_issues(validator: Draft7Validator, instance: Any, prefix: Sequence[Any]) -> List[SchemaIssue]:
    issues: List[SchemaIssue] = []
    for err in validator.iter_errors(instance):
        path = [*prefix, *err.absolute_path]
        message = err.message
        if err.validator == "required":
            m = _REQUIRED_RE.match(err.message)
            if m:
                path.append(m.group(1))
                message = f"{_join(path)} is required."
        elif err.validator == "pattern" and err.validator_value == SLUG_PATTERN:
            message = f"{_join(path) or 'value'} must be alphanumeric, underscore, or dash (got {err.instance!r})."
        elif err.validator == "pattern":
            message = f"{_join(path)} must not be blank."
        elif err.validator == "minItems":
            message = f"{_join(path)} must contain at least {err.validator_value} item(s)."
        else:
            message = f"{_join(path) or 'document'}: {err.message}"
        issues.append(SchemaIssue(path=_join(path), message=message))
    return issues


def _norm(label: Any) -> str:
    return label.strip().lower() if isinstance(label, str) else ""


def _indexed(doc: Dict[str, Any], key: str) -> List[tuple]:
    items = doc.get(key)
    if not isinstance(items, list):
        return []
    return [(i, item) for i, item in enumerate(items) if isinstance(item, dict)]


def _declared_labels(node: Dict[str, Any]) -> List[str]:
    raw = node.get("labels")
    raw = raw if isinstance(raw, dict) else {}
    yes = raw.get("yes") if isinstance(raw.get("yes"), str) else "Yes"
    no = raw.get("no") if isinstance(raw.get("no"), str) else "No"
    return [yes, no]


def _cross_field_issues(doc: Dict[str, Any]) -> List[SchemaIssue]:
    issues: List[SchemaIssue] = []
    nodes = _indexed(doc, "nodes")
    edges = _indexed(doc, "edges")

    # --- source ---
    source = doc.get("source")
    if isinstance(source, dict):
        if source.get("mode") == "template" and not source.get("templateKey"):
            issues.append(SchemaIssue("source.templateKey", "templateKey is required when source.mode is template."))
        if source.get("mode") == "manual" and source.get("templateKey"):
            issues.append(SchemaIssue("source.templateKey", "templateKey must not be set when source.mode is manual."))

    # --- channels ---
    channels = doc.get("channels")
    channel_set = set(channels) if isinstance(channels, list) and all(isinstance(c, str) for c in channels) else None
    if channel_set is not None and len(channel_set) != len(channels):
        issues.append(SchemaIssue("channels", "channels must not contain duplicates."))

    # --- nodes ---
    node_ids = set()
    trigger_count = 0
    for i, node in nodes:
        node_id = node.get("id")
        if isinstance(node_id, str) and node_id in node_ids:
            issues.append(SchemaIssue(f"nodes.{i}.id", f"Duplicate node id: {node_id}"))
        if isinstance(node_id, str):
            node_ids.add(node_id)
        ntype = node.get("type")
        if ntype == "trigger":
            trigger_count += 1
        if ntype == "message" and channel_set is not None:
            channel = node.get("channel")
            if isinstance(channel, str) and channel not in channel_set:
                issues.append(SchemaIssue(
                    f"nodes.{i}.channel",
                    f'Message node {node_id} uses channel "{channel}" not present in flow.channels.',
                ))
        if ntype == "split":
            labels = _declared_labels(node)
            if _norm(labels[0]) == _norm(labels[1]):
                issues.append(SchemaIssue(f"nodes.{i}.labels", f"Split node {node_id} must declare two distinct branch labels."))

    if isinstance(doc.get("nodes"), list) and trigger_count != 1:
        issues.append(SchemaIssue("nodes", "Flow must contain exactly one trigger node."))

    # --- edges ---
    edge_ids = set()
    for j, edge in edges:
        edge_id = edge.get("id")
        if isinstance(edge_id, str) and edge_id in edge_ids:
            issues.append(SchemaIssue(f"edges.{j}.id", f"Duplicate edge id: {edge_id}"))
        if isinstance(edge_id, str):
            edge_ids.add(edge_id)
        src, dst = edge.get("from"), edge.get("to")
        if isinstance(src, str) and src not in node_ids:
            issues.append(SchemaIssue(f"edges.{j}.from", f"Edge {edge_id} references missing source node {src}."))
        if isinstance(dst, str) and dst not in node_ids:
            issues.append(SchemaIssue(f"edges.{j}.to", f"Edge {edge_id} references missing destination node {dst}."))

    # --- split branch coverage: every declared label exactly once, nothing else ---
    for _, node in nodes:
        if node.get("type") != "split":
            continue
        split_id = node.get("id")
        declared = _declared_labels(node)
        declared_norm = [_norm(label) for label in declared]
        seen: Dict[str, str] = {}
        for j, edge in edges:
            if edge.get("from") != split_id:
                continue
            label = edge.get("label")
            key = _norm(label)
            if not key:
                issues.append(SchemaIssue(
                    f"edges.{j}.label",
                    f"Edge {edge.get('id')} leaves split node {split_id} and must be labeled "
                    f'"{declared[0]}" or "{declared[1]}".',
                ))
            elif key not in declared_norm:
                issues.append(SchemaIssue(
                    f"edges.{j}.label",
                    f'Edge {edge.get("id")} label "{label}" does not match a branch of split node {split_id} '
                    f'(expected "{declared[0]}" or "{declared[1]}").',
                ))
            elif key in seen:
                issues.append(SchemaIssue(
                    f"edges.{j}.label",
                    f'Split node {split_id} has more than one outgoing edge labeled "{label}" '
                    f"(edges {seen[key]} and {edge.get('id')}).",
                ))
            else:
                seen[key] = str(edge.get("id"))
        for label, key in zip(declared, declared_norm):
            if key not in seen:
                issues.append(SchemaIssue("edges", f'Split node {split_id} is missing an outgoing edge labeled "{label}".'))

    # --- ui.nodePositions ---
    ui = doc.get("ui")
    positions = ui.get("nodePositions") if isinstance(ui, dict) else None
    if isinstance(positions, dict):
        for node_id in positions:
            if node_id not in node_ids:
                issues.append(SchemaIssue(
                    f"ui.nodePositions.{node_id}", f"ui.nodePositions contains unknown node id {node_id}."
                ))

    return issues


def collect_issues(candidate: Any) -> List[SchemaIssue]:
    """All field-level issues for ``candidate`` (empty list when valid)."""
    issues = _schema_issues(_DOC_VALIDATOR, candidate, [])
    if not isinstance(candidate, dict):
        return issues
    for i, node in _indexed(candidate, "nodes"):
        ntype = node.get("type")
        validator = _NODE_VALIDATORS.get(ntype) if isinstance(ntype, str) else None
        if validator is not None:
            issues.extend(_schema_issues(validator, node, ["nodes", i]))
    issues.extend(_cross_field_issues(candidate))
    return issues


def validate_flow_spec_safe(candidate: Any) -> SchemaResult:
    issues = collect_issues(candidate)
    if issues:
        logger.debug(f"flow spec rejected with {len(issues)} issue(s)")
        return SchemaResult(success=False, issues=issues)
    return SchemaResult(success=True, spec=FlowSpec.from_dict(candidate))


def validate_flow_spec(candidate: Any) -> FlowSpec:
    """
    Validate an untrusted document and return the typed, defaulted FlowSpec.

    Accepts a plain dict or an existing FlowSpec (re-validated through its
    canonical dict). Raises SchemaError listing every violation.
    """
    if isinstance(candidate, FlowSpec):
        candidate = candidate.to_dict()
    result = validate_flow_spec_safe(candidate)
    if not result.success:
        raise SchemaError(result.issues)
    return result.spec


def format_delay(value: int, unit: str) -> str:
    """Human-readable delay: ``format_delay(1, "hours") == "1 hour"``."""
    noun = _SINGULAR_UNITS.get(unit, unit) if value == 1 else unit
    return f"{value} {noun}"
