"""Shared fixtures: the illustrative rule set and engines built over it."""

import copy

import pytest

from reftriage.config import CONFIG_DIR
from reftriage.config.loader import load_definition
from reftriage.config.settings import TriageSettings
from reftriage.engine import TriageEngine
from reftriage.observability.metrics import ResolutionMetrics
from reftriage.rules.trigger_table import TriggerTable

EXAMPLE_DEFINITION = {
    "version": "test-1",
    "fallback_category": "root",
    "documents": {
        "root-index": "root",
        "type-safety-crossing": "sendable",
        "shared-state-protection": "shared-state",
        "ui-thread-affinity": "ui-thread-affinity",
    },
    "rules": [
        {
            "id": "data-race-risk",
            "type": "ERROR_PATTERN",
            "matchers": [
                {"kind": "pattern", "pattern": "risks causing data races", "literal": True},
            ],
            "targets": ["type-safety-crossing"],
        },
        {
            "id": "shared-mutable-state",
            "type": "KEYWORD",
            "matchers": [{"kind": "keywords", "keywords": ["thread", "shared", "mutable"]}],
            "targets": ["shared-state-protection"],
        },
        {
            "id": "ui-related",
            "type": "DECISION_NODE",
            "question": "Is this UI-related?",
            "matchers": [{"kind": "keywords", "keywords": ["ui"]}],
            "if_true": "ui-context-known",
            "targets": ["ui-thread-affinity"],
        },
        {
            "id": "ui-context-known",
            "type": "DECISION_NODE",
            "question": "Does the top scope require UI-thread affinity?",
            "matchers": [{"kind": "setting", "key": "ui-context"}],
            "targets": ["ui-thread-affinity"],
        },
    ],
    "contracts": [
        {
            "category": "ui-thread-affinity",
            "requires": [{"kind": "SETTING", "value": "ui-context"}],
            "message": "Missing UI-context confirmation: establish whether the code runs in a UI context",
        },
    ],
}


@pytest.fixture
def example_definition():
    """A fresh, mutable copy of the illustrative rule set."""
    return copy.deepcopy(EXAMPLE_DEFINITION)


@pytest.fixture
def example_table(example_definition):
    return TriggerTable.build(example_definition)


@pytest.fixture
def settings():
    """Settings isolated from any .env file or TRIAGE_ variables."""
    return TriageSettings(_env_file=None, score_floor=0.0, ambiguity_epsilon=0.05)


@pytest.fixture
def metrics():
    return ResolutionMetrics(namespace="test")


@pytest.fixture
def engine(example_table, settings, metrics):
    return TriageEngine(example_table, settings=settings, metrics=metrics)


@pytest.fixture
def default_table():
    return TriggerTable.build(load_definition(CONFIG_DIR / "default_rules.yaml"))


@pytest.fixture
def default_engine(default_table, settings):
    return TriageEngine(default_table, settings=settings)
