"""
Decision Tree Resolver - Hierarchical Fallback Categories

DECISION_NODE rules form trees of binary questions. Traversal starts at
every root and follows the yes/no branch while the answer can be read off
the available signals.

Node outcome:
1. TRUE  -> descend into if_true, or return targets at leaf score
2. FALSE -> descend into if_false, or contribute nothing
3. UNKNOWN -> halt, return targets at halted score flagged for clarification
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from reftriage.models.resolution import Candidate
from reftriage.models.rule import MatcherKind, MatcherSpec, TriggerRule
from reftriage.models.signal import Signal, SignalKind
from reftriage.rules.trigger_table import TriggerTable

logger = logging.getLogger(__name__)

DEFAULT_LEAF_SCORE = 0.9
DEFAULT_HALTED_SCORE = 0.5

FALSY_SETTING_VALUES = frozenset({"", "0", "false", "no", "off", "none", "n"})


class Truth(str, Enum):
    """Tri-state answer to a node's question."""
    TRUE = "TRUE"
    FALSE = "FALSE"
    UNKNOWN = "UNKNOWN"


@dataclass
class TreeOutcome:
    """Candidates from all trees plus the nodes that contributed them."""
    candidates: list[Candidate] = field(default_factory=list)
    fired_nodes: list[str] = field(default_factory=list)
    halted_nodes: list[str] = field(default_factory=list)


class DecisionTreeResolver:
    """
    Walks decision trees against a signal set.

    Stateless apart from the table reference; safe to share between threads.
    """

    def __init__(
        self,
        table: TriggerTable,
        leaf_score: float = DEFAULT_LEAF_SCORE,
        halted_score: float = DEFAULT_HALTED_SCORE,
    ):
        self._table = table
        self._leaf_score = leaf_score
        self._halted_score = halted_score

    def resolve(
        self,
        signals: Iterable[Signal],
        inferred_categories: frozenset[str] = frozenset(),
    ) -> TreeOutcome:
        """
        Traverse every tree.

        Args:
            signals: Signals of the query.
            inferred_categories: Categories reached by direct rule matches,
                used by category matchers.

        Returns:
            TreeOutcome with candidates in root registration order.
        """
        signals = tuple(signals)
        outcome = TreeOutcome()

        for root_id in self._table.roots:
            self._walk(root_id, signals, inferred_categories, outcome)

        if outcome.fired_nodes or outcome.halted_nodes:
            logger.debug(
                f"Decision trees: fired={outcome.fired_nodes} halted={outcome.halted_nodes}"
            )
        return outcome

    def _walk(
        self,
        node_id: str,
        signals: tuple[Signal, ...],
        inferred: frozenset[str],
        outcome: TreeOutcome,
    ) -> None:
        # Validated at load: no cycles, so each walk terminates
        node = self._table.get_rule(node_id)
        while node is not None:
            truth = self.evaluate(node, signals, inferred)

            if truth == Truth.UNKNOWN:
                outcome.halted_nodes.append(node.id)
                outcome.candidates.extend(self._candidates(node, halted=True))
                return

            next_id = node.if_true if truth == Truth.TRUE else node.if_false
            if next_id is None:
                if truth == Truth.TRUE:
                    outcome.fired_nodes.append(node.id)
                    outcome.candidates.extend(self._candidates(node, halted=False))
                return
            node = self._table.get_rule(next_id)

    def _candidates(self, node: TriggerRule, halted: bool) -> list[Candidate]:
        score = self._halted_score if halted else self._leaf_score
        return [
            Candidate(
                document=target,
                score=score,
                source_rule=node.id,
                rule_type=node.type,
                priority_tier=node.priority_tier,
                registration_order=node.registration_order,
                target_index=index,
                requires_clarification=halted,
                question=node.question if halted else None,
            )
            for index, target in enumerate(node.targets)
        ]

    @staticmethod
    def evaluate(
        node: TriggerRule,
        signals: tuple[Signal, ...],
        inferred_categories: frozenset[str] = frozenset(),
    ) -> Truth:
        """AND-combine the node's matchers: any FALSE wins, then any UNKNOWN."""
        answers = [
            _evaluate_matcher(m, signals, inferred_categories) for m in node.matchers
        ]
        if Truth.FALSE in answers:
            return Truth.FALSE
        if Truth.UNKNOWN in answers:
            return Truth.UNKNOWN
        return Truth.TRUE


def _evaluate_matcher(
    matcher: MatcherSpec,
    signals: tuple[Signal, ...],
    inferred_categories: frozenset[str],
) -> Truth:
    if matcher.kind == MatcherKind.KEYWORDS:
        present = {s.value for s in signals if s.kind == SignalKind.KEYWORD}
        return Truth.TRUE if present.intersection(matcher.keywords) else Truth.FALSE

    if matcher.kind == MatcherKind.PATTERN:
        matched = any(
            s.kind == SignalKind.PATTERN and s.value == matcher.pattern for s in signals
        )
        return Truth.TRUE if matched else Truth.FALSE

    if matcher.kind == MatcherKind.CATEGORY:
        return Truth.TRUE if matcher.category in inferred_categories else Truth.FALSE

    # Settings are the only signals that can be genuinely absent
    setting = next(
        (s for s in signals if s.kind == SignalKind.SETTING and s.value == matcher.key),
        None,
    )
    if setting is None:
        return Truth.UNKNOWN
    value = (setting.setting_value or "").strip().lower()
    if matcher.equals is not None:
        return Truth.TRUE if value == matcher.equals.strip().lower() else Truth.FALSE
    return Truth.FALSE if value in FALSY_SETTING_VALUES else Truth.TRUE
