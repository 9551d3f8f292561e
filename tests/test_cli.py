import json
from pathlib import Path

import pandas as pd
import pytest
import yaml
from typer.testing import CliRunner

from flowgraph.cli import app
from flowgraph.templates.fixtures import welcome_series

runner = CliRunner()
BENCH = Path(__file__).resolve().parents[1] / "bench" / "graph"


@pytest.fixture
def welcome_file(tmp_path):
    fp = tmp_path / "welcome.json"
    fp.write_text(json.dumps(welcome_series()), encoding="utf-8")
    return fp


def test_validate_ok(welcome_file, tmp_path):
    report = tmp_path / "report.json"
    result = runner.invoke(app, ["validate", "-i", str(welcome_file), "--report", str(report)])
    assert result.exit_code == 0, result.output
    assert "GraphValid:  True" in result.output
    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["graph"]["valid"] is True
    assert data["schema"]["issues"] == []


def test_validate_reports_graph_errors():
    result = runner.invoke(app, ["validate", "-i", str(BENCH / "G04_orphan_message" / "flow.json")])
    assert result.exit_code == 1
    assert "[UNREACHABLE_NODE]" in result.output


def test_validate_accepts_yaml(tmp_path):
    fp = tmp_path / "welcome.yaml"
    fp.write_text(yaml.safe_dump(welcome_series()), encoding="utf-8")
    result = runner.invoke(app, ["validate", "-i", str(fp)])
    assert result.exit_code == 0, result.output


def test_layout_writes_positions(welcome_file, tmp_path):
    out = tmp_path / "layout.json"
    overrides = tmp_path / "overrides.json"
    overrides.write_text(json.dumps({"email_1": {"x": 40, "y": 60}}), encoding="utf-8")
    result = runner.invoke(app, ["layout", "-i", str(welcome_file), "-o", str(out), "--overrides", str(overrides)])
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert len(data["nodes"]) == 14
    email_1 = next(n for n in data["nodes"] if n["id"] == "email_1")
    assert (email_1["x"], email_1["y"]) == (40, 60)


def test_layout_rejects_schema_invalid_flow(tmp_path):
    out = tmp_path / "layout.json"
    result = runner.invoke(app, ["layout", "-i", str(BENCH / "G02_no_trigger" / "flow.json"), "-o", str(out)])
    assert result.exit_code == 1
    assert "exactly one trigger" in result.output
    assert not out.exists()


def test_expand_plan(tmp_path):
    out_dir = tmp_path / "plan"
    result = runner.invoke(app, ["expand", "--plan", "growth-engine", "--out", str(out_dir)])
    assert result.exit_code == 0, result.output
    flows = sorted(p for p in out_dir.glob("*.json") if p.name != "mirrors.json")
    assert len(flows) == 8
    mirrors = json.loads((out_dir / "mirrors.json").read_text(encoding="utf-8"))
    assert mirrors == [{"flowId": "growth_cart_abandonment", "mirrorsFlowId": "growth_checkout_abandonment"}]


def test_expand_with_delay(tmp_path):
    out_dir = tmp_path / "plan"
    result = runner.invoke(
        app, ["expand", "--plan", "core-foundation", "--out", str(out_dir), "--delay-value", "4", "--delay-unit", "hours"]
    )
    assert result.exit_code == 0, result.output
    doc = json.loads((out_dir / "core_email_welcome.json").read_text(encoding="utf-8"))
    assert doc["defaults"]["delay"] == {"value": 4, "unit": "hours"}


@pytest.mark.parametrize(
    "args",
    [
        ["expand", "--plan", "enterprise", "--out", "x"],
        ["expand", "--plan", "core-foundation", "--out", "x", "--delay-unit", "weeks"],
        ["generate", "--out", "x.json"],
        ["generate", "--prompt", "p", "--out", "x.json", "--attempts", "0"],
    ],
)
def test_bad_parameters(args):
    result = runner.invoke(app, args)
    assert result.exit_code == 2


def test_generate_without_api_key_fails(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    out = tmp_path / "flow.json"
    result = runner.invoke(app, ["generate", "--prompt", "A welcome series", "--out", str(out), "--attempts", "1"])
    assert result.exit_code == 1
    assert "Generator returned no JSON flow document." in result.output
    assert not out.exists()


def test_export_miro(welcome_file, tmp_path):
    out = tmp_path / "miro.json"
    result = runner.invoke(app, ["export-miro", "-i", str(welcome_file), "-o", str(out), "--board", "b1"])
    assert result.exit_code == 0, result.output
    doc = json.loads(out.read_text(encoding="utf-8"))
    assert len(doc["shapes"]) == 14
    assert len(doc["connectors"]) == 14
    assert doc["endpoints"]["shapes"].endswith("/boards/b1/shapes")


def test_bench_writes_csv(tmp_path):
    out = tmp_path / "report.csv"
    result = runner.invoke(app, ["bench", "--glob", str(BENCH / "*" / "flow.json"), "--out", str(out)])
    assert result.exit_code == 0, result.output
    df = pd.read_csv(out)
    assert len(df) == len(list(BENCH.glob("*/flow.json")))
    assert df["Match"].all()
    assert set(df.loc[df["id"] == "G01_linear_valid", "GraphValid"]) == {True}


def test_layout_yaml_output(welcome_file, tmp_path):
    out = tmp_path / "layout.yaml"
    result = runner.invoke(app, ["layout", "-i", str(welcome_file), "-o", str(out)])
    assert result.exit_code == 0, result.output
    data = yaml.safe_load(out.read_text(encoding="utf-8"))
    assert {n["id"] for n in data["nodes"]} == {n["id"] for n in welcome_series()["nodes"]}
