"""
Signal Model - Typed Facts Extracted From a Query

A Signal is the only thing the rule engines ever look at. Raw text and
project settings are reduced to signals once, then discarded.
"""

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignalKind(str, Enum):
    """Where a signal came from."""
    KEYWORD = "KEYWORD"
    PATTERN = "PATTERN"
    SETTING = "SETTING"


class Signal(BaseModel):
    """
    A typed, weighted fact extracted from a query or its settings.

    Identity is (kind, value). For SETTING signals ``value`` holds the
    normalized setting key and ``setting_value`` the stringified value.
    """

    kind: SignalKind = Field(..., description="Signal origin")
    value: str = Field(..., min_length=1, description="Token, pattern source or setting key")
    weight: float = Field(..., ge=0.0, description="Relative importance of the signal")
    setting_value: Optional[str] = Field(None, description="Setting value (SETTING signals only)")

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> tuple[SignalKind, str]:
        return (self.kind, self.value)


class QueryContext(BaseModel):
    """
    One incoming query.

    Created per query, immutable once signals are attached and discarded
    after resolution. ``signals`` is None until extraction has run.
    """

    raw_text: str = Field(..., description="Query text exactly as the developer typed it")
    settings: dict[str, Any] = Field(default_factory=dict, description="Optional project settings")
    signals: Optional[tuple[Signal, ...]] = Field(None, description="Extracted signals")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def create(cls, raw_text: str, settings: Optional[Any] = None) -> "QueryContext":
        """Build a context, dropping a settings argument that is not a mapping."""
        if isinstance(settings, Mapping):
            clean = {k: v for k, v in settings.items() if isinstance(k, str)}
        else:
            clean = {}
        return cls(raw_text=raw_text, settings=clean)

    @property
    def is_extracted(self) -> bool:
        return self.signals is not None

    def with_signals(self, signals: tuple[Signal, ...]) -> "QueryContext":
        """Return a copy carrying the extracted signals."""
        return self.model_copy(update={"signals": tuple(signals)})

    def augment(self, settings: Mapping[str, Any]) -> "QueryContext":
        """
        Return a new context with extra settings merged in.

        Used to re-ask after a blocked resolution once the missing fact is
        known. Signals are cleared so they are extracted again.
        """
        merged = dict(self.settings)
        merged.update({k: v for k, v in settings.items() if isinstance(k, str)})
        return QueryContext(raw_text=self.raw_text, settings=merged)

    def has_signal(self, kind: SignalKind, value: str) -> bool:
        return any(s.kind == kind and s.value == value for s in self.signals or ())

    def signals_of(self, kind: SignalKind) -> tuple[Signal, ...]:
        return tuple(s for s in self.signals or () if s.kind == kind)
