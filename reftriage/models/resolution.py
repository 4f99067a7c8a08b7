"""
Resolution Models - Candidates and Results

Candidate is transient and only lives inside one resolution.
ResolutionResult is what callers get back; it never carries content.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from reftriage.models.rule import DocumentRef, RuleType


class ContractStatus(str, Enum):
    OK = "OK"
    BLOCKED = "BLOCKED"


class Confidence(str, Enum):
    """Qualitative indicator attached to a result."""
    LOW = "LOW"
    NORMAL = "NORMAL"


class ResolutionState(str, Enum):
    """Lifecycle of a single resolution. Both CONTRACT_* states are terminal."""
    RAW = "RAW"
    SIGNALS_EXTRACTED = "SIGNALS_EXTRACTED"
    CANDIDATES_GENERATED = "CANDIDATES_GENERATED"
    RESOLVED = "RESOLVED"
    CONTRACT_OK = "CONTRACT_OK"
    CONTRACT_BLOCKED = "CONTRACT_BLOCKED"


class Candidate(BaseModel):
    """A scored (document, source rule) pairing produced mid-resolution."""

    document: DocumentRef
    score: float = Field(..., ge=0.0, le=1.0)
    source_rule: str
    rule_type: RuleType
    priority_tier: int = 0
    registration_order: int = 0
    target_index: int = 0
    requires_clarification: bool = False
    question: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class RankedDocument(BaseModel):
    """One entry of the ordered result list."""

    document: DocumentRef
    score: float = Field(..., ge=0.0, le=1.0)
    source_rule: Optional[str] = Field(None, description="None for fallback documents")

    model_config = ConfigDict(frozen=True)


class ResolutionResult(BaseModel):
    """
    Outcome of resolving one QueryContext.

    When ``contract_status`` is BLOCKED the document list is withheld and
    ``clarifying_question`` says what must be established first.
    """

    documents: tuple[RankedDocument, ...] = ()
    contract_status: ContractStatus = ContractStatus.OK
    clarifying_question: Optional[str] = None
    confidence: Confidence = Confidence.NORMAL
    ambiguous: bool = False
    requires_clarification: bool = False
    top_category: Optional[str] = None
    fired_rules: tuple[str, ...] = ()
    state: ResolutionState = ResolutionState.RAW
    trace: tuple[ResolutionState, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def is_blocked(self) -> bool:
        return self.contract_status == ContractStatus.BLOCKED

    @property
    def top(self) -> Optional[RankedDocument]:
        return self.documents[0] if self.documents else None

    @property
    def document_ids(self) -> list[str]:
        return [d.document.id for d in self.documents]
