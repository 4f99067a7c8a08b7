# Rules Package
"""
Deterministic rule engines.

Signals are extracted once; every rule is evaluated against signals only.
No step depends on anything but the query and the immutable Trigger Table.
"""

from reftriage.rules.trigger_table import LoadResult, TriggerTable, load_trigger_table
from reftriage.rules.signal_extractor import SignalExtractor
from reftriage.rules.decision_tree import DecisionTreeResolver, TreeOutcome, Truth
from reftriage.rules.precedence import PrecedenceResolver, Ranking
from reftriage.rules.contract_enforcer import ContractCheck, ContractEnforcer

__all__ = [
    "LoadResult",
    "TriggerTable",
    "load_trigger_table",
    "SignalExtractor",
    "DecisionTreeResolver",
    "TreeOutcome",
    "Truth",
    "PrecedenceResolver",
    "Ranking",
    "ContractCheck",
    "ContractEnforcer",
]
