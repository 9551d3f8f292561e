#!/usr/bin/env python3
# flowgraph/cli.py

import json
from pathlib import Path
from typing import Optional

import typer

from flowgraph.export.miro import build_miro_payloads, connectors_url, shapes_url
from flowgraph.generator.genllm import default_model, generate_with_repair, load_prompts_file
from flowgraph.layout.engine import LayoutOptions, build_layout
from flowgraph.structural.checker import validate_graph
from flowgraph.structural.model import Delay
from flowgraph.structural.schema import DELAY_UNITS
from flowgraph.structural.spec import SchemaError, validate_flow_spec, validate_flow_spec_safe
from flowgraph.templates.packages import PLANS, expand_package_template
from flowgraph.utils.io import load_document, save_document, write_json
from flowgraph.utils.logger import set_verbosity

app = typer.Typer(help="flowgraph CLI - validate, lay out and generate marketing automation flows")


def _load_valid(path: Path):
    """Load and schema-validate a flow, exiting with the issue list on failure."""
    try:
        return validate_flow_spec(load_document(path))
    except SchemaError as e:
        print(f"[error] {path} is not a valid flow:")
        for issue in e.issues:
            print(f"- {issue.path or '<root>'}: {issue.message}")
        raise typer.Exit(1)


@app.command()
def validate(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Flow document (.json/.yaml)"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON report to this path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug info"),
):
    """
    Run the graph and schema validators and print every problem found.
    Exit code is 1 when the flow is invalid.
    """
    set_verbosity(verbose)
    doc = load_document(input)
    graph = validate_graph(doc)
    schema = validate_flow_spec_safe(doc)

    print(f"GraphValid:  {graph.valid}")
    print(f"SchemaValid: {schema.success}")
    if graph.errors or schema.issues:
        print("Detected issues:")
        for e in graph.errors:
            print(f"- [{e.code}] {e.message}")
        for issue in schema.issues:
            print(f"- [SCHEMA] {issue.path or '<root>'}: {issue.message}")

    if report is not None:
        payload = {
            "input": str(input),
            "graph": graph.to_dict(),
            "schema": {"valid": schema.success, "issues": [i.to_dict() for i in schema.issues]},
        }
        write_json(report, payload)
        print(f"[ok] wrote report to {report}")

    if not (graph.valid and schema.success):
        raise typer.Exit(1)


@app.command()
def layout(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Flow document (.json/.yaml)"),
    out: Path = typer.Option(..., "--out", "-o", help="Where to write the layout (.json or .yaml)"),
    overrides: Optional[Path] = typer.Option(None, "--overrides", help="JSON of {nodeId: {x, y}} position overrides"),
    row_spacing: float = typer.Option(44, "--row-spacing", help="Vertical gap between rows"),
    column_gap: float = typer.Option(60, "--column-gap", help="Horizontal gap between sibling subtrees"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug info"),
):
    """Compute node positions and edge routes for a valid flow."""
    set_verbosity(verbose)
    flow = _load_valid(input)
    graph = validate_graph(flow)
    if not graph.valid:
        print("[warn] flow has structural problems; layout may be unusable:")
        print(graph.format_errors())

    position_overrides = load_document(overrides) if overrides is not None else None
    if position_overrides is not None and not isinstance(position_overrides, dict):
        raise typer.BadParameter("--overrides must hold a JSON object of {nodeId: {x, y}}")
    opts = LayoutOptions(row_spacing=row_spacing, column_gap=column_gap, position_overrides=position_overrides)
    result = build_layout(flow, opts)
    save_document(out, result.to_dict())
    print(f"[ok] wrote {len(result.nodes)} nodes / {len(result.edges)} edges to {out}")


@app.command()
def expand(
    plan: str = typer.Option(..., "--plan", help="Plan key: core-foundation | growth-engine | full-system"),
    out_root: Path = typer.Option(..., "--out", help="Output directory; one <flowId>.json per flow"),
    delay_value: Optional[int] = typer.Option(None, "--delay-value", help="Wait duration for every generated wait"),
    delay_unit: str = typer.Option("days", "--delay-unit", help="minutes | hours | days"),
):
    """Expand a plan template into schema- and graph-valid flow files."""
    if plan not in PLANS:
        raise typer.BadParameter(f"Invalid plan '{plan}'. Choose one of: {', '.join(PLANS)}")
    if delay_unit not in DELAY_UNITS:
        raise typer.BadParameter(f"Invalid delay unit '{delay_unit}'. Choose one of: {', '.join(DELAY_UNITS)}")
    if delay_value is not None and delay_value < 1:
        raise typer.BadParameter("--delay-value must be a positive integer")

    delay = Delay(delay_value, delay_unit) if delay_value is not None else None
    package = expand_package_template(plan, default_delay=delay)
    out_root.mkdir(parents=True, exist_ok=True)
    for flow in package.flows:
        write_json(out_root / f"{flow.id}.json", flow.to_dict())
        print(f"[{flow.id}] {len(flow.nodes)} nodes -> {out_root / (flow.id + '.json')}")
    write_json(out_root / "mirrors.json", [m.to_dict() for m in package.mirrors])
    print(f"[ok] expanded {plan}: {len(package.flows)} flows")


@app.command()
def generate(
    prompt: Optional[str] = typer.Option(None, "--prompt", "-p", help="Natural-language brief for one flow"),
    prompts: Optional[Path] = typer.Option(None, "--prompts", help="Prompts file (blank-line separated blocks)"),
    out: Path = typer.Option(..., "--out", help="Output file (single prompt) or directory (prompts file)"),
    model: Optional[str] = typer.Option(None, "--model", help="Chat model; defaults to FLOWGRAPH_MODEL or gpt-4o-mini"),
    attempts: int = typer.Option(3, "--attempts", help="Maximum generate/repair attempts"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Regenerate even if the output already exists"),
):
    """
    Generate flows with the LLM, feeding validator errors back until valid.

    With --prompts, writes one <CASE_ID>/flow.json (+ prompt.txt) per block.
    """
    if (prompt is None) == (prompts is None):
        raise typer.BadParameter("Pass exactly one of --prompt or --prompts")
    if attempts < 1:
        raise typer.BadParameter("--attempts must be >= 1")
    model = model or default_model()

    if prompt is not None:
        cases = [(None, prompt)]
    else:
        cases = load_prompts_file(prompts)

    failed = 0
    for case_id, text in cases:
        if case_id is None:
            target = out
        else:
            case_dir = out / case_id
            case_dir.mkdir(parents=True, exist_ok=True)
            prompt_file = case_dir / "prompt.txt"
            if not prompt_file.exists():
                prompt_file.write_text(text + "\n", encoding="utf-8")
            target = case_dir / "flow.json"
        label = case_id or target.name

        if target.exists() and not overwrite:
            print(f"[{label}] reuse existing flow: {target}")
            continue

        outcome = generate_with_repair(text, max_attempts=attempts, model=model)
        if outcome.ok:
            save_document(target, outcome.spec.to_dict())
            print(f"[{label}] valid flow after {outcome.attempts} attempt(s) -> {target}")
        else:
            failed += 1
            print(f"[{label}] FAILED after {outcome.attempts} attempt(s):")
            for err in outcome.errors:
                print(f"- {err}")
            if outcome.candidate is not None:
                rejected = target.with_name(target.stem + ".rejected.json")
                write_json(rejected, outcome.candidate)
                print(f"[{label}] last candidate kept at {rejected}")

    if failed:
        raise typer.Exit(1)


@app.command("export-miro")
def export_miro(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Flow document (.json/.yaml)"),
    out: Path = typer.Option(..., "--out", "-o", help="Where to write the payloads (.json or .yaml)"),
    origin_x: float = typer.Option(0, "--origin-x", help="Board x offset"),
    origin_y: float = typer.Option(0, "--origin-y", help="Board y offset"),
    board: Optional[str] = typer.Option(None, "--board", help="Board id; adds the target endpoint URLs"),
):
    """Write Miro shape/connector request bodies for a flow (no network calls)."""
    flow = _load_valid(input)
    payloads = build_miro_payloads(flow, origin_x=origin_x, origin_y=origin_y)
    doc = payloads.to_dict()
    if board:
        doc["endpoints"] = {"shapes": shapes_url(board), "connectors": connectors_url(board)}
    save_document(out, doc)
    print(f"[ok] wrote {len(payloads.shapes)} shapes / {len(payloads.connectors)} connectors to {out}")


@app.command()
def bench(
    glob: str = typer.Option("bench/graph/*/flow.json", "--glob", help="Glob for flow documents"),
    out: Path = typer.Option(Path("experiments/results/graph_report.csv"), "--out", help="CSV path to write results"),
    dump_details: bool = typer.Option(False, "--dump-details", help="Dump per-case JSON alongside each flow"),
):
    """
    Batch-validate flows and export a CSV report.
    When a case ships an expect.json ({"codes": [...]}) the report says whether it matched.
    """
    import glob as _glob
    import pandas as pd

    rows = []
    for fp_str in sorted(_glob.glob(glob)):
        fp = Path(fp_str)
        doc = load_document(fp)
        if not isinstance(doc, dict) or "nodes" not in doc:
            print(f"[skip] {fp} does not look like a flow document (missing 'nodes'); skipping")
            continue

        graph = validate_graph(doc)
        schema = validate_flow_spec_safe(doc)
        codes = sorted(set(graph.codes()))

        expect_path = fp.with_name("expect.json")
        expected = None
        if expect_path.exists():
            expected = sorted(set(json.loads(expect_path.read_text(encoding="utf-8")).get("codes", [])))

        rows.append({
            "id": fp.parent.name,
            "GraphValid": graph.valid,
            "SchemaValid": schema.success,
            "GraphErrors": len(graph.errors),
            "SchemaIssues": len(schema.issues),
            "Codes": " ".join(codes),
            "Expected": " ".join(expected) if expected is not None else "",
            "Match": (codes == expected) if expected is not None else None,
        })

        if dump_details:
            write_json(fp.parent / "flowgraph_detail.json", {
                "graph": graph.to_dict(),
                "schema": [i.to_dict() for i in schema.issues],
            })

    out.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows).to_csv(out, index=False)
    print(f"[ok] wrote {out}")


if __name__ == "__main__":
    app()
