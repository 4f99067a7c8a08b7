# Reference Triage Engine - Main Package
"""
Deterministic query triage and reference resolution.

This package provides:
- Signal extraction from free-text questions and project settings
- An immutable, validated Trigger Table of rules
- Decision tree traversal for hierarchical fallback categories
- Precedence-based ranking of candidate documents
- Contract gating of high-risk answer categories
"""

__version__ = "0.1.0"

from reftriage.engine import TriageEngine, bootstrap
from reftriage.errors import DocumentNotFoundError, InvalidRuleDefinition, RuleFileError, TriageError
from reftriage.models import (
    Confidence,
    ContractStatus,
    DocumentRef,
    QueryContext,
    ResolutionResult,
    ResolutionState,
    Signal,
    SignalKind,
)
from reftriage.rules import LoadResult, TriggerTable, load_trigger_table

__all__ = [
    "TriageEngine",
    "bootstrap",
    "DocumentNotFoundError",
    "InvalidRuleDefinition",
    "RuleFileError",
    "TriageError",
    "Confidence",
    "ContractStatus",
    "DocumentRef",
    "QueryContext",
    "ResolutionResult",
    "ResolutionState",
    "Signal",
    "SignalKind",
    "LoadResult",
    "TriggerTable",
    "load_trigger_table",
]
