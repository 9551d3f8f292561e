import pytest

from flowgraph.export.miro import (
    DEFAULT_STYLE,
    EXPORT_SIZE_OVERRIDES,
    build_miro_payloads,
    connectors_url,
    node_content,
    shape_style,
    shapes_url,
)
from flowgraph.layout.engine import build_layout
from flowgraph.structural.model import MessageNode, NoteNode, StrategyNode, WaitNode, Delay
from flowgraph.structural.spec import validate_flow_spec


def test_one_shape_per_node_and_connector_per_edge(welcome_spec):
    payloads = build_miro_payloads(welcome_spec)
    assert [s.node_id for s in payloads.shapes] == [n.id for n in welcome_spec.nodes]
    assert [c.edge_id for c in payloads.connectors] == [e.id for e in welcome_spec.edges]


def test_positions_are_centers_plus_origin(welcome_spec):
    layout = build_layout(welcome_spec)
    payloads = build_miro_payloads(welcome_spec, layout=layout, origin_x=1000, origin_y=-50)
    placed = layout.node("email_1")
    shape = next(s for s in payloads.shapes if s.node_id == "email_1")
    assert shape.payload["position"] == {
        "x": 1000 + placed.x + placed.width / 2,
        "y": -50 + placed.y + placed.height / 2,
    }
    assert shape.payload["geometry"] == {"width": placed.width, "height": placed.height}


def test_shape_styles(welcome_spec):
    payloads = build_miro_payloads(welcome_spec)
    by_id = {s.node_id: s.payload for s in payloads.shapes}
    assert by_id["email_1"]["style"]["borderColor"] == "#6495ED"
    assert by_id["email_1"]["data"]["shape"] == "round_rectangle"
    assert "shape" not in by_id["email_1"]["style"]
    assert by_id["split_engaged"]["style"]["fillColor"] == "#FAF5FF"

    sms = MessageNode(id="sms_1", channel="sms", title="Text")
    assert shape_style(sms)["borderColor"] == "#4CAF50"
    no_side = StrategyNode(id="st", title="S", primary_focus="a", secondary_focus="b", branch_label="no")
    assert shape_style(no_side)["fillColor"] == "#EFF6FF"


def test_content_is_escaped():
    note = NoteNode(id="n", title="<b>Bold</b>", body="Tom & Jerry")
    html = node_content(note)
    assert "&lt;b&gt;Bold&lt;/b&gt;" in html
    assert "Tom &amp; Jerry" in html
    assert "<b>" not in html


def test_wait_content_uses_readable_delay():
    assert "Wait 1 day" in node_content(WaitNode(id="w", duration=Delay(1, "days")))
    assert "Wait 6 hours" in node_content(WaitNode(id="w", duration=Delay(6, "hours")))


def test_message_content_lists_settings(purchase_spec):
    html = node_content(purchase_spec.node("sms_no_urgency"))
    assert "Message Type:</strong> SMS" in html
    assert "[YES]" in html
    assert "Has not placed order since flow entry" in html
    html = node_content(purchase_spec.node("email_welcome"))
    assert "Smart Sending:</strong> OFF" in html
    assert "PRIMARY FOCUS" in html


def test_connectors_snap_and_caption(welcome_spec):
    payloads = build_miro_payloads(welcome_spec)
    yes = next(c for c in payloads.connectors if c.edge_id == "e5_yes")
    assert yes.payload["startItem"] == {"snapTo": "bottom"}
    assert yes.payload["endItem"] == {"snapTo": "top"}
    assert yes.payload["captions"] == [{"content": "Yes", "position": "50%"}]
    plain = next(c for c in payloads.connectors if c.edge_id == "e1")
    assert "captions" not in plain.payload


def test_annotation_connectors_are_sideways(linear_doc):
    linear_doc["nodes"].append({"id": "note_1", "type": "note", "title": "Tip", "body": "Short subject."})
    linear_doc["edges"].append({"id": "e_note", "from": "email_1", "to": "note_1"})
    spec = validate_flow_spec(linear_doc)
    payloads = build_miro_payloads(spec)
    conn = next(c for c in payloads.connectors if c.edge_id == "e_note")
    assert conn.payload["startItem"]["snapTo"] == "right"
    assert conn.payload["endItem"]["snapTo"] == "left"
    assert conn.payload["style"]["strokeStyle"] == "dashed"
    note_shape = next(s for s in payloads.shapes if s.node_id == "note_1")
    assert note_shape.payload["geometry"]["height"] == EXPORT_SIZE_OVERRIDES["note"]["height"]


def test_resolve_fills_item_ids(welcome_spec):
    payloads = build_miro_payloads(welcome_spec)
    conn = payloads.connectors[0]
    body = conn.resolve({"trigger_signup": "3458764", "email_1": "3458765"})
    assert body["startItem"] == {"snapTo": "bottom", "id": "3458764"}
    assert body["endItem"] == {"snapTo": "top", "id": "3458765"}
    assert "id" not in conn.payload["startItem"]
    with pytest.raises(KeyError):
        conn.resolve({})


def test_urls_and_serialization(welcome_spec):
    assert shapes_url("b1") == "https://api.miro.com/v2/boards/b1/shapes"
    assert connectors_url("b1") == "https://api.miro.com/v2/boards/b1/connectors"
    doc = build_miro_payloads(welcome_spec).to_dict()
    assert set(doc) == {"shapes", "connectors"}
    assert doc["connectors"][0]["from"] == "trigger_signup"
    assert DEFAULT_STYLE["shape"] == "round_rectangle"
