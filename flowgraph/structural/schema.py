# flowgraph/structural/schema.py
"""JSON Schema (Draft 7) definitions for FlowSpec documents.

The document schema checks the envelope; each node is then checked against
the schema of its own kind (looked up by ``type``), so error paths point at
the offending field rather than at a oneOf branch.
"""

SLUG_PATTERN = "^[A-Za-z0-9_-]+$"

CHANNELS = ("email", "sms")
DELAY_UNITS = ("minutes", "hours", "days")
TEMPLATE_KEYS = ("core-foundation", "growth-engine", "full-system")

NODE_TYPES = (
    "trigger",
    "profileFilter",
    "split",
    "wait",
    "message",
    "outcome",
    "merge",
    "note",
    "strategy",
)

# Annotation kinds are not part of the execution graph
ANNOTATION_TYPES = frozenset({"note", "strategy"})

_ID = {"type": "string", "minLength": 1, "pattern": SLUG_PATTERN}
_TEXT = {"type": "string", "minLength": 1}
_LABEL = {"type": "string", "minLength": 1, "pattern": "\\S"}

_POSITIVE_INT = {"type": "integer", "minimum": 1}

_DELAY = {
    "type": "object",
    "required": ["value", "unit"],
    "properties": {
        "value": _POSITIVE_INT,
        "unit": {"enum": list(DELAY_UNITS)},
    },
}


def _node(required, properties):
    # id/type are checked by the envelope schema, not repeated per kind
    return {"type": "object", "required": list(required), "properties": properties}


NODE_SCHEMAS = {
    "trigger": _node(
        ["title", "event"],
        {"title": _TEXT, "event": _TEXT, "description": {"type": "string"}},
    ),
    "profileFilter": _node(
        ["title", "filters"],
        {"title": _TEXT, "filters": {"type": "array", "items": _TEXT, "minItems": 1}},
    ),
    "split": _node(
        ["title", "condition"],
        {
            "title": _TEXT,
            "condition": _TEXT,
            # Missing keys default to Yes / No
            "labels": {
                "type": "object",
                "properties": {"yes": _LABEL, "no": _LABEL},
            },
        },
    ),
    "wait": _node(["duration"], {"duration": _DELAY}),
    "message": _node(
        ["channel", "title"],
        {
            "channel": {"enum": list(CHANNELS)},
            "title": _TEXT,
            "stepIndex": _POSITIVE_INT,
            "copyHint": {"type": "string"},
            "objectiveFocus": {
                "type": "object",
                "required": ["title", "bullets"],
                "properties": {
                    "title": _TEXT,
                    "bullets": {"type": "array", "items": _TEXT, "minItems": 1},
                },
            },
            "tags": {"type": "array", "items": _TEXT},
            "discountCode": {
                "type": "object",
                "required": ["included"],
                "properties": {
                    "included": {"type": "boolean"},
                    "code": {"type": "string"},
                    "description": {"type": "string"},
                },
            },
            "abTest": {
                "type": "object",
                "required": ["description"],
                "properties": {"description": _TEXT},
            },
            "messagingFocus": {"type": "string"},
            "smartSending": {"type": "boolean"},
            "utmLinks": {"type": "boolean"},
            "filterConditions": {"type": "string"},
            "implementationNotes": {"type": "string"},
            "strategy": {
                "type": "object",
                "required": ["primaryFocus", "secondaryFocus"],
                "properties": {"primaryFocus": _TEXT, "secondaryFocus": _TEXT},
            },
        },
    ),
    "outcome": _node(["title", "result"], {"title": _TEXT, "result": _TEXT}),
    "merge": _node([], {}),
    "note": _node(["title", "body"], {"title": _TEXT, "body": _TEXT}),
    "strategy": _node(
        ["title", "primaryFocus", "secondaryFocus"],
        {
            "title": _TEXT,
            "primaryFocus": _TEXT,
            "secondaryFocus": _TEXT,
            "branchLabel": {"enum": ["yes", "no"]},
        },
    ),
}

FLOW_SPEC_SCHEMA = {
    "type": "object",
    "required": ["id", "name", "channels", "nodes", "edges"],
    "properties": {
        "id": _ID,
        "name": _TEXT,
        "source": {
            "type": "object",
            "required": ["mode"],
            "properties": {
                "mode": {"enum": ["manual", "template"]},
                "templateKey": {"enum": list(TEMPLATE_KEYS)},
            },
        },
        "channels": {
            "type": "array",
            "items": {"enum": list(CHANNELS)},
            "minItems": 1,
        },
        "defaults": {
            "type": "object",
            "properties": {
                # value/unit default independently, so neither is required here
                "delay": {
                    "type": "object",
                    "properties": _DELAY["properties"],
                },
            },
        },
        "ui": {
            "type": "object",
            "properties": {
                "nodePositions": {
                    "type": "object",
                    "propertyNames": {"pattern": SLUG_PATTERN},
                    "additionalProperties": {
                        "type": "object",
                        "required": ["x", "y"],
                        "properties": {"x": {"type": "number"}, "y": {"type": "number"}},
                    },
                },
            },
        },
        # Item shape beyond id/type is checked per kind (NODE_SCHEMAS)
        "nodes": {
            "type": "array",
            "minItems": 2,
            "items": {
                "type": "object",
                "required": ["id", "type"],
                "properties": {"id": _ID, "type": {"enum": list(NODE_TYPES)}},
            },
        },
        "edges": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["id", "from", "to"],
                "properties": {
                    "id": _ID,
                    "from": _ID,
                    "to": _ID,
                    "label": {"type": "string"},
                },
            },
        },
    },
}
