"""
Triage Engine - Resolve Entry Point

Pipeline:
    text + settings -> SignalExtractor
                    -> {direct rule matches, DecisionTreeResolver}
                    -> PrecedenceResolver
                    -> ContractEnforcer
                    -> ResolutionResult

Resolution is synchronous and side-effect free apart from logging and
metrics. The Trigger Table is the only shared state and it is never
mutated, so one engine can serve any number of threads without locking.
"""

import time
from typing import Any, Optional

from reftriage.config.loader import load_definition
from reftriage.config.settings import TriageSettings, get_settings
from reftriage.errors import InvalidRuleDefinition
from reftriage.models.resolution import (
    Confidence,
    ContractStatus,
    RankedDocument,
    ResolutionResult,
    ResolutionState,
)
from reftriage.models.signal import QueryContext
from reftriage.observability.metrics import ResolutionMetrics
from reftriage.rules.contract_enforcer import ContractEnforcer
from reftriage.rules.decision_tree import DecisionTreeResolver
from reftriage.rules.precedence import PrecedenceResolver, Ranking
from reftriage.rules.signal_extractor import SignalExtractor
from reftriage.rules.trigger_table import TriggerTable
from reftriage.utils.logging_context import ContextualLogger, LoggingContext

logger = ContextualLogger.get_logger(__name__)


class TriageEngine:
    """
    Resolves developer questions to ranked, contract-gated document refs.

    Usage:
        engine = TriageEngine.from_settings()
        result = engine.resolve_text("Sending value risks causing data races")
    """

    def __init__(
        self,
        table: TriggerTable,
        settings: Optional[TriageSettings] = None,
        metrics: Optional[ResolutionMetrics] = None,
    ):
        """
        Initialize the engine over an already built table.

        Args:
            table: Validated Trigger Table.
            settings: Engine settings (defaults to the global settings).
            metrics: Metrics sink; None disables metric recording.
        """
        settings = settings or get_settings()
        self._table = table
        self._settings = settings
        self._metrics = metrics
        self._extractor = SignalExtractor(table)
        self._trees = DecisionTreeResolver(
            table,
            leaf_score=settings.leaf_score,
            halted_score=settings.halted_score,
        )
        self._precedence = PrecedenceResolver(
            table,
            score_floor=settings.score_floor,
            ambiguity_epsilon=settings.ambiguity_epsilon,
        )
        self._enforcer = ContractEnforcer(table)

    @classmethod
    def from_settings(cls, settings: Optional[TriageSettings] = None) -> "TriageEngine":
        """
        Load the rule file named by the settings and build an engine.

        Fail-closed: any invalid definition raises and no engine exists.

        Raises:
            RuleFileError: rule file unreadable.
            InvalidRuleDefinition: rule definitions rejected.
        """
        settings = settings or get_settings()
        metrics = (
            ResolutionMetrics(namespace=settings.metrics_namespace)
            if settings.metrics_enabled
            else None
        )
        try:
            table = TriggerTable.build(load_definition(settings.rules_path))
        except InvalidRuleDefinition:
            if metrics is not None:
                metrics.record_load_failure()
            logger.critical(f"Refusing to start: rule definitions in {settings.rules_path} are invalid")
            raise
        return cls(table, settings=settings, metrics=metrics)

    @property
    def table(self) -> TriggerTable:
        return self._table

    @property
    def metrics(self) -> Optional[ResolutionMetrics]:
        return self._metrics

    def resolve_text(
        self,
        raw_text: str,
        settings: Optional[Any] = None,
        query_id: Optional[str] = None,
    ) -> ResolutionResult:
        """Convenience wrapper building the QueryContext."""
        return self.resolve(QueryContext.create(raw_text, settings), query_id=query_id)

    def resolve(self, context: QueryContext, query_id: Optional[str] = None) -> ResolutionResult:
        """
        Resolve one query.

        Never raises for a well-formed context. A blocked result is terminal:
        the caller re-asks with context.augment(...) once the missing fact
        is known.

        Args:
            context: Query context; signals are extracted if not yet present.
            query_id: Optional id for log correlation.

        Returns:
            ResolutionResult.
        """
        with LoggingContext.bind(query_id, self._table.version):
            started = time.perf_counter()
            trace = [ResolutionState.RAW]

            if not context.is_extracted:
                context = context.with_signals(
                    self._extractor.extract(context.raw_text, context.settings)
                )
            signals = context.signals
            trace.append(ResolutionState.SIGNALS_EXTRACTED)
            logger.debug(f"Extracted {len(signals)} signal(s)")

            fired_rules: list[str] = []
            if not signals:
                logger.info("No signals extracted, using fallback category")
                ranking = Ranking(fallback=True)
            else:
                direct = self._precedence.match_direct(signals)
                inferred = frozenset(c.document.category for c in direct.candidates)
                trees = self._trees.resolve(signals, inferred)
                fired_rules = direct.fired_rules + trees.fired_nodes + trees.halted_nodes
                ranking = self._precedence.rank(direct.candidates + trees.candidates)
            trace.append(ResolutionState.CANDIDATES_GENERATED)

            result = self._build_result(ranking, fired_rules)
            trace.append(ResolutionState.RESOLVED)

            check = self._enforcer.check(result.top_category, signals)
            if check.blocked:
                trace.append(ResolutionState.CONTRACT_BLOCKED)
                result = result.model_copy(update={
                    "documents": (),
                    "contract_status": ContractStatus.BLOCKED,
                    "clarifying_question": check.clarifying_question,
                    "requires_clarification": True,
                })
            else:
                trace.append(ResolutionState.CONTRACT_OK)
            result = result.model_copy(update={"state": trace[-1], "trace": tuple(trace)})

            duration = time.perf_counter() - started
            if self._metrics is not None:
                self._metrics.record_resolution(result, duration, fallback=ranking.fallback)

            logger.info(
                f"Resolved: status={result.contract_status.value} "
                f"confidence={result.confidence.value} "
                f"top={result.top.document if result.top else result.top_category} "
                f"documents={len(result.documents)} ambiguous={result.ambiguous}"
            )
            return result

    def _build_result(self, ranking: Ranking, fired_rules: list[str]) -> ResolutionResult:
        if ranking.fallback:
            documents = tuple(
                RankedDocument(document=ref, score=0.0)
                for ref in self._table.fallback_documents
            )
            return ResolutionResult(
                documents=documents,
                confidence=Confidence.LOW,
                top_category=self._table.fallback_category,
                fired_rules=tuple(fired_rules),
            )

        top = ranking.top
        documents = tuple(
            RankedDocument(document=c.document, score=c.score, source_rule=c.source_rule)
            for c in ranking.ranked
        )
        return ResolutionResult(
            documents=documents,
            confidence=Confidence.LOW if top.requires_clarification else Confidence.NORMAL,
            clarifying_question=top.question if top.requires_clarification else None,
            ambiguous=ranking.ambiguous,
            requires_clarification=top.requires_clarification,
            top_category=top.document.category,
            fired_rules=tuple(fired_rules),
        )


def bootstrap(settings: Optional[TriageSettings] = None) -> TriageEngine:
    """
    Process start-up: configure logging, load the Trigger Table, build the engine.

    Raises on invalid rule definitions; the process must not continue
    without a valid table.
    """
    settings = settings or get_settings()
    ContextualLogger.configure_logging(settings.log_level)
    engine = TriageEngine.from_settings(settings)
    logger.info(f"Triage engine ready (table v{engine.table.version})")
    return engine
