"""
Rule Models - Trigger Rules, Document Handles and Contracts

TriggerRule is a tagged variant over RuleType. All models here are frozen:
once the Trigger Table is built nothing in it changes.
"""

from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from reftriage.models.signal import Signal, SignalKind


class RuleType(str, Enum):
    """Kinds of trigger rule."""
    ERROR_PATTERN = "ERROR_PATTERN"
    KEYWORD = "KEYWORD"
    DECISION_NODE = "DECISION_NODE"


# Tie-break precedence between rule types (higher wins)
RULE_TYPE_PRECEDENCE = {
    RuleType.ERROR_PATTERN: 3,
    RuleType.DECISION_NODE: 2,
    RuleType.KEYWORD: 1,
}


class MatcherKind(str, Enum):
    """What a single matcher inspects."""
    PATTERN = "pattern"
    KEYWORDS = "keywords"
    SETTING = "setting"
    CATEGORY = "category"


# Matcher kinds each rule type accepts
ALLOWED_MATCHERS = {
    RuleType.ERROR_PATTERN: frozenset({MatcherKind.PATTERN}),
    RuleType.KEYWORD: frozenset({MatcherKind.KEYWORDS}),
    RuleType.DECISION_NODE: frozenset(MatcherKind),
}


class DocumentRef(BaseModel):
    """Opaque handle into the Document Store. Never embeds content."""

    id: str = Field(..., min_length=1, description="Document identifier")
    category: str = Field(..., min_length=1, description="Document category")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.category}/{self.id}"


class MatcherSpec(BaseModel):
    """
    One matcher of a rule.

    - pattern: regular expression searched against the raw query text
      (``literal: true`` escapes it first)
    - keywords: a non-empty keyword set
    - setting: a project setting key, optionally compared with ``equals``
    - category: a category inferred from direct rule matches
    """

    kind: MatcherKind
    pattern: Optional[str] = None
    literal: bool = False
    keywords: tuple[str, ...] = ()
    key: Optional[str] = None
    equals: Optional[str] = None
    category: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class TriggerRule(BaseModel):
    """
    A registered mapping from matchers to target documents.

    DECISION_NODE rules also carry the binary question they ask and the ids
    of the child nodes taken when the answer is yes or no.
    """

    id: str = Field(..., min_length=1)
    type: RuleType
    matchers: tuple[MatcherSpec, ...] = Field(..., min_length=1)
    targets: tuple[DocumentRef, ...] = Field(..., min_length=1)
    priority_tier: int = 0
    registration_order: int = Field(..., ge=0)
    question: Optional[str] = None
    if_true: Optional[str] = None
    if_false: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def keywords(self) -> frozenset[str]:
        """Union of every keyword set on the rule."""
        return frozenset(
            kw
            for m in self.matchers
            if m.kind == MatcherKind.KEYWORDS
            for kw in m.keywords
        )

    @property
    def patterns(self) -> tuple[str, ...]:
        return tuple(m.pattern for m in self.matchers if m.kind == MatcherKind.PATTERN)

    @property
    def is_leaf(self) -> bool:
        return self.if_true is None and self.if_false is None

    @property
    def precedence(self) -> int:
        return RULE_TYPE_PRECEDENCE[self.type]


class SignalRequirement(BaseModel):
    """A signal that must be present for a contract to hold."""

    kind: SignalKind
    value: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)


class Contract(BaseModel):
    """
    Precondition gating whether a category may be returned as actionable.

    All required signals must be present. A SETTING requirement is met by the
    setting key being supplied, whatever its value.
    """

    applies_to_category: str = Field(..., min_length=1)
    requires: tuple[SignalRequirement, ...] = Field(..., min_length=1)
    violation_message: str = Field(..., min_length=1)
    clarifying_question: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def missing(self, signals: Iterable[Signal]) -> tuple[SignalRequirement, ...]:
        """Requirements not satisfied by the given signals."""
        present = {(s.kind, s.value) for s in signals}
        return tuple(r for r in self.requires if (r.kind, r.value) not in present)

    def is_satisfied(self, signals: Iterable[Signal]) -> bool:
        return not self.missing(signals)

    def question(self) -> str:
        """Clarifying question to hand back when the contract is violated."""
        if self.clarifying_question:
            return self.clarifying_question
        message = self.violation_message.strip()
        if message.endswith("?"):
            return message
        return f"{message.rstrip('.')}. Can you confirm this before we continue?"
