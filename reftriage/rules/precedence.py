"""
Precedence Resolver - Scoring, Merging and Ordering

Scores direct rule matches, merges them with decision tree candidates and
produces a total order over documents.

Scoring:
- ERROR_PATTERN: exactly 1.0
- KEYWORD: summed weight of the matched keyword signals / table weight of the
  rule's full keyword set, capped at 1.0
- DECISION_NODE: leaf or halted score, supplied by the tree resolver

Ordering (first difference wins):
1. score, descending
2. rule type: ERROR_PATTERN > DECISION_NODE > KEYWORD
3. priority tier, descending
4. registration order, ascending
5. target position within the rule, then document id
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from reftriage.models.resolution import Candidate
from reftriage.models.rule import RULE_TYPE_PRECEDENCE, DocumentRef, RuleType, TriggerRule
from reftriage.models.signal import Signal, SignalKind
from reftriage.rules.trigger_table import TriggerTable

logger = logging.getLogger(__name__)

PATTERN_SCORE = 1.0
DEFAULT_SCORE_FLOOR = 0.0
DEFAULT_AMBIGUITY_EPSILON = 0.05


@dataclass
class DirectMatches:
    candidates: list[Candidate] = field(default_factory=list)
    fired_rules: list[str] = field(default_factory=list)


@dataclass
class Ranking:
    """Ordered, de-duplicated candidates; empty when the fallback applies."""
    ranked: list[Candidate] = field(default_factory=list)
    fallback: bool = False
    ambiguous: bool = False

    @property
    def top(self) -> Candidate | None:
        return self.ranked[0] if self.ranked else None


def sort_key(candidate: Candidate) -> tuple:
    return (
        -candidate.score,
        -RULE_TYPE_PRECEDENCE[candidate.rule_type],
        -candidate.priority_tier,
        candidate.registration_order,
        candidate.target_index,
        candidate.document.id,
        candidate.document.category,
    )


def _rule_rank(candidate: Candidate) -> tuple:
    """Which contributing rule gets recorded for a merged document."""
    return (
        -RULE_TYPE_PRECEDENCE[candidate.rule_type],
        -candidate.priority_tier,
        candidate.registration_order,
        candidate.target_index,
    )


class PrecedenceResolver:
    """
    Deterministic ranking over candidates from every source.

    Identical inputs always give identical output: no step depends on set
    or dict iteration order of anything but registration-ordered tables.
    """

    def __init__(
        self,
        table: TriggerTable,
        score_floor: float = DEFAULT_SCORE_FLOOR,
        ambiguity_epsilon: float = DEFAULT_AMBIGUITY_EPSILON,
    ):
        self._table = table
        self._score_floor = score_floor
        self._ambiguity_epsilon = ambiguity_epsilon

    # ------------------------------------------------------------------
    # Direct rules
    # ------------------------------------------------------------------

    def match_direct(self, signals: Iterable[Signal]) -> DirectMatches:
        """Score every ERROR_PATTERN and KEYWORD rule against the signals."""
        signals = tuple(signals)
        patterns = {s.value for s in signals if s.kind == SignalKind.PATTERN}
        keywords: dict[str, float] = {}
        for s in signals:
            if s.kind == SignalKind.KEYWORD:
                keywords[s.value] = max(s.weight, keywords.get(s.value, 0.0))

        matches = DirectMatches()
        for rule in self._table.direct_rules:
            if rule.type == RuleType.ERROR_PATTERN:
                score = PATTERN_SCORE if patterns.intersection(rule.patterns) else 0.0
            else:
                score = self.keyword_score(rule, keywords)

            if score <= 0.0:
                continue
            matches.fired_rules.append(rule.id)
            matches.candidates.extend(_rule_candidates(rule, score))
        return matches

    def keyword_score(self, rule: TriggerRule, keywords: Mapping[str, float]) -> float:
        """
        Normalized coverage of the rule's keyword set, in [0, 1].

        Args:
            rule: KEYWORD rule to score
            keywords: keyword signal value -> signal weight

        The numerator uses the weights carried by the signals, so
        pre-extracted contexts are scored with the weights they supply.
        The denominator is always the table's weight of the full set.
        """
        vocabulary = sorted(rule.keywords)
        total = math.fsum(self._table.keyword_weight(k) for k in vocabulary)
        if total <= 0.0:
            return 0.0
        matched = math.fsum(keywords[k] for k in vocabulary if k in keywords)
        return min(1.0, matched / total)

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def rank(self, candidates: Iterable[Candidate]) -> Ranking:
        """
        Merge duplicates, drop candidates at or below the floor and order.

        Returns:
            Ranking; ``fallback`` is set when nothing clears the floor.
        """
        merged = [
            c for c in self.merge(candidates) if c.score > self._score_floor
        ]
        if not merged:
            return Ranking(fallback=True)

        merged.sort(key=sort_key)
        return Ranking(ranked=merged, ambiguous=self._is_ambiguous(merged))

    def _is_ambiguous(self, ranked: list[Candidate]) -> bool:
        """Top candidate is within epsilon of the best one from another rule."""
        top = ranked[0]
        runner_up = next((c for c in ranked[1:] if c.source_rule != top.source_rule), None)
        if runner_up is None:
            return False
        return top.score - runner_up.score <= self._ambiguity_epsilon

    @staticmethod
    def merge(candidates: Iterable[Candidate]) -> list[Candidate]:
        """
        Collapse candidates for the same document.

        Keeps the maximum score and records the highest-precedence
        contributing rule. The result needs clarification only when every
        contributor reaching the maximum score does.
        """
        groups: dict[DocumentRef, list[Candidate]] = {}
        for candidate in candidates:
            groups.setdefault(candidate.document, []).append(candidate)

        merged = []
        for group in groups.values():
            best_score = max(c.score for c in group)
            recorded = min(group, key=_rule_rank)
            at_best = [c for c in group if c.score == best_score]
            clarification = all(c.requires_clarification for c in at_best)
            question = next(
                (c.question for c in sorted(at_best, key=_rule_rank) if c.question), None
            ) if clarification else None
            merged.append(recorded.model_copy(update={
                "score": best_score,
                "requires_clarification": clarification,
                "question": question,
            }))
        return merged

    def fallback_candidates(self) -> list[DocumentRef]:
        return list(self._table.fallback_documents)


def _rule_candidates(rule: TriggerRule, score: float) -> list[Candidate]:
    return [
        Candidate(
            document=target,
            score=score,
            source_rule=rule.id,
            rule_type=rule.type,
            priority_tier=rule.priority_tier,
            registration_order=rule.registration_order,
            target_index=index,
        )
        for index, target in enumerate(rule.targets)
    ]
