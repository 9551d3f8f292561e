import copy

import pytest

from flowgraph.structural.spec import validate_flow_spec
from flowgraph.templates.fixtures import purchase_welcome_series, welcome_series

_LINEAR = {
    "id": "linear-test",
    "name": "Linear test flow",
    "channels": ["email"],
    "nodes": [
        {"id": "trigger", "type": "trigger", "title": "Trigger", "event": "When someone subscribes"},
        {"id": "email_1", "type": "message", "channel": "email", "title": "Email 1", "stepIndex": 1},
        {"id": "wait_1", "type": "wait", "duration": {"value": 2, "unit": "days"}},
        {"id": "email_2", "type": "message", "channel": "email", "title": "Email 2", "stepIndex": 2},
        {"id": "outcome", "type": "outcome", "title": "Outcome", "result": "Series completed"},
    ],
    "edges": [
        {"id": "e1", "from": "trigger", "to": "email_1"},
        {"id": "e2", "from": "email_1", "to": "wait_1"},
        {"id": "e3", "from": "wait_1", "to": "email_2"},
        {"id": "e4", "from": "email_2", "to": "outcome"},
    ],
}


@pytest.fixture
def linear_doc():
    return copy.deepcopy(_LINEAR)


@pytest.fixture
def linear_spec(linear_doc):
    return validate_flow_spec(linear_doc)


@pytest.fixture
def welcome_doc():
    return welcome_series()


@pytest.fixture
def welcome_spec(welcome_doc):
    return validate_flow_spec(welcome_doc)


@pytest.fixture
def purchase_spec():
    return validate_flow_spec(purchase_welcome_series())
