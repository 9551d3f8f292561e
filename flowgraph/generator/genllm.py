# flowgraph/generator/genllm.py

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from openai import OpenAI

from flowgraph.structural.checker import GraphValidationResult, validate_graph
from flowgraph.structural.model import FlowSpec
from flowgraph.structural.spec import validate_flow_spec_safe
from flowgraph.utils.logger import get_logger

logger = get_logger("genllm")

DEFAULT_MODEL = "gpt-4o-mini"

# (prompt, feedback or None) -> candidate document or None
Generator = Callable[[str, Optional[str]], Optional[Dict[str, Any]]]

SYSTEM_PROMPT = """
You are a senior retention marketing strategist who designs email/SMS automation flows.
Return ONLY one raw JSON object (no Markdown, no code fences, no commentary) describing a flow:

{
  "id": "<slug: letters, digits, _ or ->",
  "name": "<flow name>",
  "source": {"mode": "manual"},
  "channels": ["email", "sms"],
  "defaults": {"delay": {"value": 2, "unit": "days"}},
  "nodes": [...],
  "edges": [{"id": "<slug>", "from": "<node id>", "to": "<node id>", "label": "<optional>"}]
}

Node kinds (every node has a unique slug "id" and a "type"):
- trigger: {"title", "event"}; exactly one per flow
- wait: {"duration": {"value": <positive integer>, "unit": "minutes" | "hours" | "days"}}
- message: {"channel": "email" | "sms", "title", "stepIndex"?, "copyHint"?}; channel must be listed in "channels"
- split: {"title", "condition", "labels": {"yes": "Yes", "no": "No"}}
- merge: {} (joins branches)
- outcome: {"title", "result"}; terminal

Structural rules:
- every node is reachable from the trigger and every path ends at an outcome
- only outcomes may have no outgoing edge
- each split has exactly one outgoing edge per label, labeled with that label, and the two
  branches lead to different nodes
- no duplicate edges
""".strip()


def _get_client() -> Optional[OpenAI]:
    """OpenAI client from the environment, or None when no key is configured."""
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        return None
    kwargs: Dict[str, Any] = {"api_key": api_key}
    org = os.environ.get("OPENAI_ORG")
    if org:
        kwargs["organization"] = org
    base_url = os.environ.get("OPENAI_BASE_URL")
    if base_url:
        kwargs["base_url"] = base_url
    return OpenAI(**kwargs)


def default_model() -> str:
    return os.environ.get("FLOWGRAPH_MODEL") or DEFAULT_MODEL


def load_prompts_file(path: Path) -> List[Tuple[str, str]]:
    """
    Parse a prompts file of blank-line separated blocks:

        welcome_01
        <prompt text...>

        winback_01
        <prompt text...>
    """
    text = path.read_text(encoding="utf-8").strip()
    blocks = [b.strip() for b in text.split("\n\n") if b.strip()]
    pairs: List[Tuple[str, str]] = []
    for blk in blocks:
        lines = [line.strip() for line in blk.splitlines() if line.strip()]
        if not lines:
            continue
        pairs.append((lines[0], " ".join(lines[1:])))
    return pairs


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def extract_json(text: str) -> Optional[Dict[str, Any]]:
    """First JSON object in a model reply (fenced or bare), else None."""
    candidates = [m.group(1) for m in _FENCE_RE.finditer(text)] + [text]
    for chunk in candidates:
        chunk = chunk.strip()
        start, end = chunk.find("{"), chunk.rfind("}")
        if start < 0 or end <= start:
            continue
        try:
            doc = json.loads(chunk[start:end + 1])
        except json.JSONDecodeError:
            continue
        if isinstance(doc, dict):
            return doc
    return None


def build_messages(prompt: str, feedback: Optional[str] = None) -> List[Dict[str, str]]:
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"Design a flow for the following brief:\n\n{prompt}"},
    ]
    if feedback:
        messages.append({
            "role": "user",
            "content": (
                "Your previous flow was rejected by the validator with these problems:\n"
                f"{feedback}\n\nReturn the full corrected flow JSON."
            ),
        })
    return messages


def generate_flow_spec(
    prompt: str,
    model: Optional[str] = None,
    feedback: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Ask the chat model for one candidate FlowSpec document.

    Returns None when no client is configured or the reply holds no JSON
    object. The result is untrusted: validate it before use.
    """
    client = _get_client()
    if client is None:
        logger.warning("OPENAI_API_KEY not set; no flow generated")
        return None

    resp = client.chat.completions.create(
        model=model or default_model(),
        messages=build_messages(prompt, feedback),
        temperature=0.5,
        response_format={"type": "json_object"},
    )
    content = resp.choices[0].message.content or ""
    doc = extract_json(content)
    if doc is None:
        logger.warning(f"model reply held no JSON object ({len(content)} chars)")
    return doc


@dataclass
class RepairOutcome:
    spec: Optional[FlowSpec]
    attempts: int
    errors: List[str] = field(default_factory=list)
    graph: Optional[GraphValidationResult] = None
    candidate: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.spec is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "attempts": self.attempts,
            "errors": list(self.errors),
            "spec": self.spec.to_dict() if self.spec is not None else None,
        }


def check_candidate(candidate: Any) -> Tuple[Optional[FlowSpec], List[str], GraphValidationResult]:
    """Graph check then schema check; returns (spec or None, error lines, graph result)."""
    graph = validate_graph(candidate)
    errors = [f"[{e.code}] {e.message}" for e in graph.errors]
    schema = validate_flow_spec_safe(candidate)
    errors += [f"[SCHEMA] {issue.path or '<root>'}: {issue.message}" for issue in schema.issues]
    spec = schema.spec if (graph.valid and schema.success) else None
    return spec, errors, graph


def generate_with_repair(
    prompt: str,
    generate: Optional[Generator] = None,
    max_attempts: int = 3,
    model: Optional[str] = None,
) -> RepairOutcome:
    """
    Bounded generate -> validate -> feed back loop.

    Each failed attempt's error list becomes the feedback for the next one.
    Stops at the first candidate that passes both graph and schema checks, or
    after ``max_attempts``; the outcome then carries the last errors.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    if generate is None:
        def generate(p: str, fb: Optional[str]) -> Optional[Dict[str, Any]]:
            return generate_flow_spec(p, model=model, feedback=fb)

    feedback: Optional[str] = None
    outcome = RepairOutcome(spec=None, attempts=0)
    for attempt in range(1, max_attempts + 1):
        outcome.attempts = attempt
        candidate = generate(prompt, feedback)
        outcome.candidate = candidate
        if candidate is None:
            outcome.errors = ["Generator returned no JSON flow document."]
            outcome.graph = None
        else:
            spec, errors, graph = check_candidate(candidate)
            outcome.graph = graph
            outcome.errors = errors
            if spec is not None:
                outcome.spec = spec
                logger.info(f"flow accepted on attempt {attempt}/{max_attempts}")
                return outcome
        feedback = "\n".join(f"- {e}" for e in outcome.errors)
        logger.warning(f"attempt {attempt}/{max_attempts} rejected with {len(outcome.errors)} problem(s)")
    return outcome
