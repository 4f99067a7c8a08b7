"""
Unit Tests for the Decision Tree Resolver

Tests:
- Tri-state evaluation of each matcher kind
- Descent, leaf and halt behaviour
- Category matchers fed by direct matches
"""

import pytest

from reftriage.models.rule import RuleType
from reftriage.models.signal import Signal, SignalKind
from reftriage.rules.decision_tree import DecisionTreeResolver, Truth
from reftriage.rules.signal_extractor import SignalExtractor
from reftriage.rules.trigger_table import TriggerTable


@pytest.fixture
def resolver(example_table):
    return DecisionTreeResolver(example_table)


@pytest.fixture
def extract(example_table):
    extractor = SignalExtractor(example_table)
    return lambda text, settings=None: extractor.extract(text, settings)


def _setting(key, value):
    return Signal(kind=SignalKind.SETTING, value=key, weight=1.0, setting_value=value)


# ============================================================================
# Evaluation
# ============================================================================

def test_keyword_node_is_false_without_keyword(example_table, extract):
    node = example_table.get_rule("ui-related")

    assert DecisionTreeResolver.evaluate(node, extract("shared state")) == Truth.FALSE
    assert DecisionTreeResolver.evaluate(node, extract("my UI code")) == Truth.TRUE


def test_setting_node_is_unknown_when_setting_absent(example_table):
    node = example_table.get_rule("ui-context-known")

    assert DecisionTreeResolver.evaluate(node, ()) == Truth.UNKNOWN


@pytest.mark.parametrize("value,expected", [
    ("true", Truth.TRUE),
    ("main", Truth.TRUE),
    ("false", Truth.FALSE),
    ("No", Truth.FALSE),
    ("0", Truth.FALSE),
])
def test_setting_node_truthiness(example_table, value, expected):
    node = example_table.get_rule("ui-context-known")

    assert DecisionTreeResolver.evaluate(node, (_setting("ui-context", value),)) == expected


def test_setting_equals_comparison(example_definition):
    rule = next(r for r in example_definition["rules"] if r["id"] == "ui-context-known")
    rule["matchers"][0]["equals"] = "MainActor"
    node = TriggerTable.build(example_definition).get_rule("ui-context-known")

    assert DecisionTreeResolver.evaluate(node, (_setting("ui-context", "mainactor"),)) == Truth.TRUE
    assert DecisionTreeResolver.evaluate(node, (_setting("ui-context", "true"),)) == Truth.FALSE


def test_false_matcher_wins_over_unknown(example_definition):
    rule = next(r for r in example_definition["rules"] if r["id"] == "ui-context-known")
    rule["matchers"].append({"kind": "keywords", "keywords": ["widget"]})
    node = TriggerTable.build(example_definition).get_rule("ui-context-known")

    assert DecisionTreeResolver.evaluate(node, ()) == Truth.FALSE


# ============================================================================
# Traversal
# ============================================================================

def test_no_candidates_when_root_is_false(resolver, extract):
    outcome = resolver.resolve(extract("shared mutable cache"))

    assert outcome.candidates == []
    assert outcome.fired_nodes == []
    assert outcome.halted_nodes == []


def test_halts_with_reduced_score_when_setting_missing(resolver, extract):
    outcome = resolver.resolve(extract("pin this to the UI thread"))

    assert outcome.halted_nodes == ["ui-context-known"]
    assert [c.document.id for c in outcome.candidates] == ["ui-thread-affinity"]
    candidate = outcome.candidates[0]
    assert candidate.score == 0.5
    assert candidate.requires_clarification
    assert candidate.question == "Does the top scope require UI-thread affinity?"
    assert candidate.rule_type == RuleType.DECISION_NODE


def test_leaf_returns_full_confidence(resolver, extract):
    outcome = resolver.resolve(extract("pin this to the UI thread", {"ui-context": "yes"}))

    assert outcome.fired_nodes == ["ui-context-known"]
    candidate = outcome.candidates[0]
    assert candidate.score == 0.9
    assert not candidate.requires_clarification
    assert candidate.question is None


def test_false_without_else_branch_contributes_nothing(resolver, extract):
    outcome = resolver.resolve(extract("pin this to the UI thread", {"ui-context": "false"}))

    assert outcome.candidates == []


def test_false_branch_descends_into_if_false(example_definition, extract):
    example_definition["documents"]["offload"] = "performance"
    rule = next(r for r in example_definition["rules"] if r["id"] == "ui-context-known")
    rule["if_false"] = "offload-work"
    example_definition["rules"].append({
        "id": "offload-work",
        "type": "DECISION_NODE",
        "matchers": [{"kind": "keywords", "keywords": ["slow"]}],
        "targets": ["offload"],
    })
    table = TriggerTable.build(example_definition)
    signals = SignalExtractor(table).extract("slow UI", {"ui-context": "no"})

    outcome = DecisionTreeResolver(table).resolve(signals)

    assert [c.document.id for c in outcome.candidates] == ["offload"]
    assert outcome.candidates[0].score == 0.9


def test_custom_scores(example_table, extract):
    resolver = DecisionTreeResolver(example_table, leaf_score=0.8, halted_score=0.3)

    outcome = resolver.resolve(extract("UI thread"))

    assert outcome.candidates[0].score == 0.3


def test_category_matcher_uses_inferred_categories(example_definition):
    example_definition["documents"]["sendable-fix"] = "sendable"
    example_definition["rules"].append({
        "id": "sendable-follow-up",
        "type": "DECISION_NODE",
        "matchers": [
            {"kind": "category", "category": "sendable"},
            {"kind": "keywords", "keywords": ["fix"]},
        ],
        "targets": ["sendable-fix"],
    })
    table = TriggerTable.build(example_definition)
    signals = SignalExtractor(table).extract("how do I fix this")
    resolver = DecisionTreeResolver(table)

    assert resolver.resolve(signals).candidates == []
    outcome = resolver.resolve(signals, inferred_categories=frozenset({"sendable"}))
    assert [c.document.id for c in outcome.candidates] == ["sendable-fix"]
