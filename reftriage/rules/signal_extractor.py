"""
Signal Extractor - Query Normalization

Turns raw query text and optional project settings into typed Signals.
Pure function of its inputs; never raises.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from reftriage.models.signal import Signal, SignalKind
from reftriage.rules.trigger_table import TriggerTable
from reftriage.utils.text import normalize_setting_key, tokenize

logger = logging.getLogger(__name__)

# Exact-match confidence for pattern and setting signals
EXACT_WEIGHT = 1.0

_SCALAR_TYPES = (str, int, float, bool)


class SignalExtractor:
    """
    Extracts KEYWORD, PATTERN and SETTING signals.

    - KEYWORD: one per distinct stemmed token outside the stop-word set,
      weighted by the table's IDF so generic words do not dominate
    - PATTERN: one per registered pattern found in the raw, un-lowercased
      text (diagnostic messages are case-sensitive)
    - SETTING: one per well-formed settings entry
    """

    def __init__(self, table: TriggerTable):
        self._table = table

    def extract(self, raw_text: str, settings: Optional[Any] = None) -> tuple[Signal, ...]:
        """
        Extract signals from a query.

        Args:
            raw_text: Query text (may be empty).
            settings: Optional settings mapping; anything else is ignored.

        Returns:
            Signals in deterministic order: patterns, keywords, settings.
        """
        signals: list[Signal] = []
        signals.extend(self._pattern_signals(raw_text))
        signals.extend(self._keyword_signals(raw_text))
        signals.extend(self._setting_signals(settings))
        return tuple(signals)

    def _pattern_signals(self, raw_text: str) -> list[Signal]:
        return [
            Signal(kind=SignalKind.PATTERN, value=source, weight=EXACT_WEIGHT)
            for source, compiled in self._table.patterns
            if compiled.search(raw_text)
        ]

    def _keyword_signals(self, raw_text: str) -> list[Signal]:
        seen: set[str] = set()
        signals = []
        for token in tokenize(raw_text):
            if token in seen:
                continue
            seen.add(token)
            signals.append(Signal(
                kind=SignalKind.KEYWORD,
                value=token,
                weight=self._table.keyword_weight(token),
            ))
        return signals

    def _setting_signals(self, settings: Optional[Any]) -> list[Signal]:
        if settings is None:
            return []
        if not isinstance(settings, Mapping):
            logger.warning(f"Ignoring settings of type {type(settings).__name__}: expected a mapping")
            return []

        by_key: dict[str, Signal] = {}
        for raw_key, raw_value in settings.items():
            if not isinstance(raw_key, str) or not normalize_setting_key(raw_key):
                logger.debug(f"Skipping setting with invalid key {raw_key!r}")
                continue
            if raw_value is None or not isinstance(raw_value, _SCALAR_TYPES):
                logger.debug(f"Skipping setting {raw_key!r}: value is not a scalar")
                continue
            key = normalize_setting_key(raw_key)
            by_key[key] = Signal(
                kind=SignalKind.SETTING,
                value=key,
                weight=EXACT_WEIGHT,
                setting_value=str(raw_value).strip(),
            )
        return [by_key[k] for k in sorted(by_key)]
