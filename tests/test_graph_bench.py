import json
from pathlib import Path

import pytest

from flowgraph.structural.checker import ERROR_CODES, validate_graph
from flowgraph.structural.spec import validate_flow_spec_safe

BENCH_ROOT = Path(__file__).resolve().parents[1] / "bench" / "graph"


@pytest.mark.parametrize("case_dir", sorted(BENCH_ROOT.glob("G*")), ids=lambda p: p.name)
def test_graph_bench(case_dir: Path):
    """
    Graph benchmark:
    - load flow.json
    - load expect.json
    - run validate_graph + validate_flow_spec_safe
    - compare validity flags and the set of error codes
    """
    flow_file = case_dir / "flow.json"
    exp_file = case_dir / "expect.json"

    assert flow_file.exists(), f"Missing flow.json in {case_dir}"
    assert exp_file.exists(), f"Missing expect.json in {case_dir}"

    with flow_file.open("r", encoding="utf-8") as f:
        flow = json.load(f)

    with exp_file.open("r", encoding="utf-8") as f:
        expect = json.load(f)

    result = validate_graph(flow)
    schema = validate_flow_spec_safe(flow)

    codes = sorted(set(result.codes()))
    assert codes == sorted(expect["codes"]), f"{case_dir.name}: codes={codes}, expected={expect['codes']}"
    assert all(c in ERROR_CODES for c in codes)

    if "graph_valid" in expect:
        assert result.valid == bool(expect["graph_valid"]), f"{case_dir.name}: graph valid={result.valid}"

    if "schema_valid" in expect:
        expected = bool(expect["schema_valid"])
        assert schema.success == expected, (
            f"{case_dir.name}: schema valid={schema.success}, issues={[i.to_dict() for i in schema.issues]}"
        )


def test_bench_has_cases():
    assert len(list(BENCH_ROOT.glob("G*"))) >= 10
