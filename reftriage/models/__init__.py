# Models Package
"""
Pydantic models for typed data contracts.

All entities are immutable after creation.
"""

from reftriage.models.signal import Signal, SignalKind, QueryContext
from reftriage.models.rule import (
    Contract,
    DocumentRef,
    MatcherKind,
    MatcherSpec,
    RuleType,
    SignalRequirement,
    TriggerRule,
)
from reftriage.models.definition import (
    ContractDefinition,
    RequirementDefinition,
    RuleDefinition,
    TriggerTableDefinition,
)
from reftriage.models.resolution import (
    Candidate,
    Confidence,
    ContractStatus,
    RankedDocument,
    ResolutionResult,
    ResolutionState,
)

__all__ = [
    "Signal",
    "SignalKind",
    "QueryContext",
    "Contract",
    "DocumentRef",
    "MatcherKind",
    "MatcherSpec",
    "RuleType",
    "SignalRequirement",
    "TriggerRule",
    "ContractDefinition",
    "RequirementDefinition",
    "RuleDefinition",
    "TriggerTableDefinition",
    "Candidate",
    "Confidence",
    "ContractStatus",
    "RankedDocument",
    "ResolutionResult",
    "ResolutionState",
]
