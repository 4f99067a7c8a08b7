"""
Error types.

Only table loading and document fetching raise. Resolution itself never
raises for well-formed input; its outcomes are typed results.
"""

from typing import Iterable


class TriageError(Exception):
    """Base class for reftriage errors."""
    pass


class InvalidRuleDefinition(TriageError):
    """
    Raised when a rule definition set is rejected.

    Carries every problem found, not just the first one. The table is never
    partially built.
    """

    def __init__(self, problems: Iterable[str]):
        self.problems = list(problems)
        summary = "; ".join(self.problems) if self.problems else "unknown problem"
        super().__init__(f"Invalid rule definitions ({len(self.problems)} problem(s)): {summary}")


class RuleFileError(TriageError):
    """Raised when a rule file cannot be read or parsed."""
    pass


class DocumentNotFoundError(TriageError):
    """Raised by a Document Store when an identifier has no content."""
    pass
