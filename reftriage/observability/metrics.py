"""
Resolution Metrics - Prometheus Counters and Latency

Each ResolutionMetrics owns its CollectorRegistry, so several engines (or
tests) can coexist in one process without duplicate registration errors.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from reftriage.models.resolution import ResolutionResult

logger = logging.getLogger(__name__)


class ResolutionMetrics:
    """
    Prometheus metrics for the triage engine.

    Responsibilities:
    1. Count resolutions by contract status and confidence
    2. Count fallbacks and ambiguous results
    3. Track resolution latency
    4. Count rejected trigger tables
    """

    def __init__(self, namespace: str = "reftriage", registry: Optional[CollectorRegistry] = None):
        self.namespace = namespace
        self.registry = registry or CollectorRegistry()

        self.resolutions_total = Counter(
            f"{namespace}_resolutions_total",
            "Total resolutions",
            ["contract_status", "confidence"],
            registry=self.registry,
        )
        self.fallbacks_total = Counter(
            f"{namespace}_fallbacks_total",
            "Resolutions that fell back to the root category",
            registry=self.registry,
        )
        self.ambiguous_total = Counter(
            f"{namespace}_ambiguous_total",
            "Resolutions whose top two scores were within epsilon",
            registry=self.registry,
        )
        self.table_load_failures_total = Counter(
            f"{namespace}_table_load_failures_total",
            "Trigger tables rejected at load time",
            registry=self.registry,
        )
        self.resolution_latency = Histogram(
            f"{namespace}_resolution_latency_seconds",
            "Time spent resolving one query",
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1),
            registry=self.registry,
        )

    def record_resolution(self, result: ResolutionResult, duration_seconds: float, fallback: bool):
        self.resolutions_total.labels(
            contract_status=result.contract_status.value,
            confidence=result.confidence.value,
        ).inc()
        if fallback:
            self.fallbacks_total.inc()
        if result.ambiguous:
            self.ambiguous_total.inc()
        self.resolution_latency.observe(duration_seconds)

    def record_load_failure(self):
        self.table_load_failures_total.inc()

    def value(self, name: str, labels: Optional[dict[str, str]] = None) -> float:
        """Current value of a sample, 0.0 when it has not been recorded."""
        result = self.registry.get_sample_value(name, labels or {})
        return result if result is not None else 0.0

    def export(self) -> bytes:
        """Text exposition format for scraping."""
        return generate_latest(self.registry)
