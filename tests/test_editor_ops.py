import logging

import pytest

from flowgraph.editor.ops import (
    add_edge,
    add_node,
    next_id,
    remove_edge,
    remove_node,
    update_edge_label,
    update_node_title,
)
from flowgraph.structural.checker import validate_graph
from flowgraph.structural.model import MergeNode, MessageNode
from flowgraph.structural.spec import SchemaError, validate_flow_spec


def test_next_id():
    assert next_id("edge", []) == "edge_1"
    assert next_id("edge", ["edge_1", "edge_2", "edge_4"]) == "edge_3"


def test_add_node_and_edge_returns_new_spec(linear_spec):
    sms = MessageNode(id="email_3", channel="email", title="Bonus email")
    edited = add_node(linear_spec, sms)
    assert edited.node("email_3") == sms
    assert linear_spec.node("email_3") is None

    edited = add_edge(edited, "email_2", "email_3")
    assert edited.edge("edge_1").from_id == "email_2"
    assert edited.edge("edge_1").label is None


def test_add_node_from_dict(linear_spec):
    edited = add_node(linear_spec, {"id": "merge_1", "type": "merge"})
    assert isinstance(edited.node("merge_1"), MergeNode)


def test_add_edge_with_explicit_id_and_label(linear_spec):
    edited = add_edge(linear_spec, "email_1", "outcome", label="skip", edge_id="e_skip")
    edge = edited.edge("e_skip")
    assert (edge.from_id, edge.to_id, edge.label) == ("email_1", "outcome", "skip")
    assert validate_graph(edited).valid


def test_invalid_edit_raises_and_leaves_input_untouched(linear_spec):
    before = linear_spec.to_dict()
    with pytest.raises(SchemaError) as exc:
        add_edge(linear_spec, "email_1", "ghost")
    assert any(i.path.endswith(".to") for i in exc.value.issues)
    assert linear_spec.to_dict() == before

    with pytest.raises(SchemaError):
        add_node(linear_spec, {"id": "sms_1", "type": "message", "channel": "sms", "title": "Text"})


def test_remove_node_cascades(linear_doc):
    linear_doc["ui"] = {"nodePositions": {"email_2": {"x": 1, "y": 1}, "email_1": {"x": 2, "y": 2}}}
    spec = validate_flow_spec(linear_doc)
    edited = remove_node(spec, "email_2")
    assert edited.node("email_2") is None
    assert all("email_2" not in (e.from_id, e.to_id) for e in edited.edges)
    assert set(edited.ui.node_positions) == {"email_1"}
    # graph problems are for validate_graph to report
    assert not validate_graph(edited).valid


def test_remove_edge(linear_spec):
    edited = add_edge(linear_spec, "email_1", "outcome", label="skip")
    edited = remove_edge(edited, "edge_1")
    assert edited.edge("edge_1") is None
    assert edited == linear_spec


def test_unknown_ids_raise_key_error(linear_spec):
    with pytest.raises(KeyError):
        remove_node(linear_spec, "ghost")
    with pytest.raises(KeyError):
        remove_edge(linear_spec, "ghost")
    with pytest.raises(KeyError):
        update_edge_label(linear_spec, "ghost", "Yes")
    with pytest.raises(KeyError):
        update_node_title(linear_spec, "ghost", "Title")


def test_update_edge_label(welcome_spec):
    edited = update_edge_label(welcome_spec, "e2", "  after send ")
    assert edited.edge("e2").label == "after send"

    cleared = update_edge_label(edited, "e2", "   ")
    assert cleared.edge("e2").label is None
    assert "label" not in cleared.edge("e2").to_dict()


def test_relabeling_split_branch_is_rejected(welcome_spec):
    with pytest.raises(SchemaError):
        update_edge_label(welcome_spec, "e6_no", "Maybe")


def test_update_node_title(welcome_spec):
    edited = update_node_title(welcome_spec, "email_4", "Email 4: Social proof")
    assert edited.node("email_4").title == "Email 4: Social proof"
    assert welcome_spec.node("email_4").title == "Email 4"


def test_update_title_without_title_is_noop(welcome_spec, caplog):
    caplog.set_level(logging.WARNING, logger="flowgraph.editor")
    logging.getLogger("flowgraph").propagate = True
    try:
        edited = update_node_title(welcome_spec, "wait_1", "Pause")
    finally:
        logging.getLogger("flowgraph").propagate = False
    assert edited == welcome_spec
    assert "has no title" in caplog.text
