"""
Contract Enforcer - Mandatory Preconditions

Certain categories must not be answered until a specific fact is known
(e.g. whether code actually runs on the UI thread before recommending
main-thread isolation everywhere). Contracts encode those facts as
required signals.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from reftriage.models.rule import Contract
from reftriage.models.signal import Signal
from reftriage.rules.trigger_table import TriggerTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractCheck:
    """Outcome of checking one category's contracts."""
    category: Optional[str]
    violated: Optional[Contract] = None

    @property
    def blocked(self) -> bool:
        return self.violated is not None

    @property
    def clarifying_question(self) -> Optional[str]:
        return self.violated.question() if self.violated else None


class ContractEnforcer:
    """Evaluates contracts attached to the top-ranked category."""

    def __init__(self, table: TriggerTable):
        self._table = table

    def check(self, category: Optional[str], signals: Iterable[Signal]) -> ContractCheck:
        """
        Evaluate every contract of ``category`` in declaration order.

        The first contract with a missing required signal blocks; later
        contracts are not consulted.
        """
        if category is None:
            return ContractCheck(category=None)

        signals = tuple(signals)
        for contract in self._table.contracts_for(category):
            missing = contract.missing(signals)
            if missing:
                logger.info(
                    f"Contract on '{category}' violated: missing "
                    f"{', '.join(f'{r.kind.value}:{r.value}' for r in missing)}"
                )
                return ContractCheck(category=category, violated=contract)
        return ContractCheck(category=category)
