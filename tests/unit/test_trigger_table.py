"""
Unit Tests for the Trigger Table

Tests:
- Successful build and read-only access
- Fail-closed validation (every problem reported, no partial table)
- Decision tree structure checks
"""

import pytest

from reftriage.errors import InvalidRuleDefinition
from reftriage.models.rule import MatcherKind, RuleType
from reftriage.rules.trigger_table import LoadResult, TriggerTable, load_trigger_table


def _rule(example_definition, rule_id):
    return next(r for r in example_definition["rules"] if r["id"] == rule_id)


# ============================================================================
# Successful load
# ============================================================================

class TestBuild:
    def test_rules_keep_registration_order(self, example_table):
        assert [r.id for r in example_table.rules] == [
            "data-race-risk",
            "shared-mutable-state",
            "ui-related",
            "ui-context-known",
        ]
        assert [r.registration_order for r in example_table.rules] == [0, 1, 2, 3]

    def test_literal_patterns_are_escaped_and_compiled(self, example_definition):
        _rule(example_definition, "data-race-risk")["matchers"][0]["pattern"] = "value (x) risks"
        table = TriggerTable.build(example_definition)

        source, compiled = table.patterns[0]
        assert compiled.search("a value (x) risks b")
        assert table.get_rule("data-race-risk").matchers[0].pattern == source

    def test_keywords_are_normalized(self, example_definition):
        _rule(example_definition, "shared-mutable-state")["matchers"][0]["keywords"] = [
            "Threads", "SHARED", "shared",
        ]
        table = TriggerTable.build(example_definition)

        assert table.get_rule("shared-mutable-state").matchers[0].keywords == ("thread", "shared")

    def test_roots_are_nodes_without_parent(self, example_table):
        assert example_table.roots == ("ui-related",)

    def test_direct_rules_exclude_decision_nodes(self, example_table):
        assert {r.type for r in example_table.direct_rules} == {
            RuleType.ERROR_PATTERN, RuleType.KEYWORD,
        }

    def test_fallback_documents(self, example_table):
        assert [d.id for d in example_table.fallback_documents] == ["root-index"]

    def test_contracts_by_category(self, example_table):
        contracts = example_table.contracts_for("ui-thread-affinity")
        assert len(contracts) == 1
        assert example_table.contracts_for("sendable") == ()

    def test_setting_matcher_key_is_normalized(self, example_definition):
        _rule(example_definition, "ui-context-known")["matchers"][0]["key"] = "  UI-Context "
        table = TriggerTable.build(example_definition)

        matcher = table.get_rule("ui-context-known").matchers[0]
        assert matcher.kind == MatcherKind.SETTING
        assert matcher.key == "ui-context"

    def test_table_is_read_only(self, example_table):
        with pytest.raises(TypeError):
            example_table.documents["new"] = None
        with pytest.raises(Exception):
            example_table.rules[0].id = "changed"


# ============================================================================
# Fail-closed validation
# ============================================================================

class TestValidation:
    def test_rule_without_targets_is_rejected(self, example_definition):
        _rule(example_definition, "shared-mutable-state")["targets"] = []

        with pytest.raises(InvalidRuleDefinition) as exc:
            TriggerTable.build(example_definition)
        assert any("at least one target" in p for p in exc.value.problems)

    def test_load_returns_error_and_no_table(self, example_definition):
        _rule(example_definition, "data-race-risk")["targets"] = []

        result = load_trigger_table(example_definition)

        assert isinstance(result, LoadResult)
        assert not result.ok
        assert result.table is None
        assert isinstance(result.error, InvalidRuleDefinition)
        with pytest.raises(InvalidRuleDefinition):
            result.unwrap()

    def test_load_success(self, example_definition):
        result = load_trigger_table(example_definition)

        assert result.ok
        assert result.error is None
        assert result.unwrap() is result.table

    def test_duplicate_ids_are_rejected(self, example_definition):
        example_definition["rules"].append(dict(_rule(example_definition, "data-race-risk")))

        with pytest.raises(InvalidRuleDefinition, match="duplicate id"):
            TriggerTable.build(example_definition)

    def test_bad_regex_is_rejected(self, example_definition):
        _rule(example_definition, "data-race-risk")["matchers"] = [
            {"kind": "pattern", "pattern": "unbalanced (group"},
        ]

        with pytest.raises(InvalidRuleDefinition, match="does not compile"):
            TriggerTable.build(example_definition)

    def test_oversized_repetition_is_rejected(self, example_definition):
        _rule(example_definition, "data-race-risk")["matchers"] = [
            {"kind": "pattern", "pattern": "a{4294967296}"},
        ]

        result = load_trigger_table(example_definition)

        assert not result.ok
        assert any("does not compile" in p for p in result.error.problems)

    def test_contract_pattern_requirement_by_literal_text(self, example_definition):
        example_definition["contracts"][0]["requires"] = [
            {"kind": "PATTERN", "value": "risks causing data races"},
        ]

        table = TriggerTable.build(example_definition)

        requirement = table.contracts_for("ui-thread-affinity")[0].requires[0]
        assert requirement.value == table.patterns[0][0]

    def test_contract_pattern_requirement_must_be_registered(self, example_definition):
        example_definition["contracts"][0]["requires"] = [
            {"kind": "PATTERN", "value": "never registered"},
        ]

        with pytest.raises(InvalidRuleDefinition, match="not a registered pattern"):
            TriggerTable.build(example_definition)

    def test_empty_keyword_set_is_rejected(self, example_definition):
        _rule(example_definition, "shared-mutable-state")["matchers"] = [
            {"kind": "keywords", "keywords": []},
        ]

        with pytest.raises(InvalidRuleDefinition, match="non-empty"):
            TriggerTable.build(example_definition)

    @pytest.mark.parametrize("keyword", ["two words", "the", "!!!"])
    def test_keyword_must_be_single_meaningful_token(self, example_definition, keyword):
        _rule(example_definition, "shared-mutable-state")["matchers"][0]["keywords"] = [keyword]

        with pytest.raises(InvalidRuleDefinition, match="single non-stop-word token"):
            TriggerTable.build(example_definition)

    def test_matcher_kind_must_suit_rule_type(self, example_definition):
        _rule(example_definition, "shared-mutable-state")["matchers"] = [
            {"kind": "setting", "key": "ui-context"},
        ]

        with pytest.raises(InvalidRuleDefinition, match="not allowed on KEYWORD"):
            TriggerTable.build(example_definition)

    def test_unknown_target_is_rejected(self, example_definition):
        _rule(example_definition, "data-race-risk")["targets"] = ["missing-doc"]

        with pytest.raises(InvalidRuleDefinition, match="unknown target document"):
            TriggerTable.build(example_definition)

    def test_fallback_category_needs_documents(self, example_definition):
        example_definition["fallback_category"] = "nowhere"

        with pytest.raises(InvalidRuleDefinition, match="fallback category"):
            TriggerTable.build(example_definition)

    def test_unknown_fields_are_rejected(self, example_definition):
        example_definition["rules"][0]["priority"] = 3

        with pytest.raises(InvalidRuleDefinition):
            TriggerTable.build(example_definition)

    def test_unknown_rule_type_is_rejected(self, example_definition):
        example_definition["rules"][0]["type"] = "FUZZY"

        with pytest.raises(InvalidRuleDefinition):
            TriggerTable.build(example_definition)

    def test_every_problem_is_reported(self, example_definition):
        _rule(example_definition, "data-race-risk")["targets"] = []
        _rule(example_definition, "shared-mutable-state")["matchers"] = []

        with pytest.raises(InvalidRuleDefinition) as exc:
            TriggerTable.build(example_definition)
        assert len(exc.value.problems) == 2

    def test_contract_on_unknown_category_is_rejected(self, example_definition):
        example_definition["contracts"][0]["category"] = "nope"

        with pytest.raises(InvalidRuleDefinition, match="unknown category"):
            TriggerTable.build(example_definition)

    def test_contract_without_requirements_is_rejected(self, example_definition):
        example_definition["contracts"][0]["requires"] = []

        with pytest.raises(InvalidRuleDefinition, match="required signal"):
            TriggerTable.build(example_definition)


# ============================================================================
# Decision tree structure
# ============================================================================

class TestTreeStructure:
    def test_unknown_child_is_rejected(self, example_definition):
        _rule(example_definition, "ui-related")["if_false"] = "ghost"

        with pytest.raises(InvalidRuleDefinition, match="unknown child node"):
            TriggerTable.build(example_definition)

    def test_child_must_be_decision_node(self, example_definition):
        _rule(example_definition, "ui-related")["if_false"] = "data-race-risk"

        with pytest.raises(InvalidRuleDefinition, match="not a DECISION_NODE"):
            TriggerTable.build(example_definition)

    def test_cycle_is_rejected(self, example_definition):
        _rule(example_definition, "ui-context-known")["if_true"] = "ui-related"

        with pytest.raises(InvalidRuleDefinition, match="cycle"):
            TriggerTable.build(example_definition)

    def test_two_parents_are_rejected(self, example_definition):
        example_definition["rules"].append({
            "id": "second-root",
            "type": "DECISION_NODE",
            "matchers": [{"kind": "keywords", "keywords": ["view"]}],
            "if_true": "ui-context-known",
            "targets": ["ui-thread-affinity"],
        })

        with pytest.raises(InvalidRuleDefinition, match="more than one parent"):
            TriggerTable.build(example_definition)

    def test_only_decision_nodes_have_children(self, example_definition):
        _rule(example_definition, "shared-mutable-state")["if_true"] = "ui-related"

        with pytest.raises(InvalidRuleDefinition, match="only DECISION_NODE"):
            TriggerTable.build(example_definition)
