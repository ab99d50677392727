from typing import List

from prometheus_client import Counter, Gauge

from analytics.models import DerivedMetrics, Recommendation, RecommendationKind, Severity

FRAGMENTATION_RATIO = Gauge(
    "memory_fragmentation_ratio",
    "Share of total memory that is not available (0-1)",
)

PRESSURE_SCORE = Gauge(
    "memory_pressure_score",
    "Weighted memory scarcity and swap saturation score (0-1)",
)

PAGE_FAULT_RATE = Gauge(
    "memory_page_fault_rate",
    "Major plus minor page faults per second",
)

SWAP_USAGE_PERCENT = Gauge(
    "memory_swap_usage_percent",
    "Swap space in use (0-100)",
)

USED_BYTES = Gauge(
    "memory_used_bytes",
    "Total minus available memory in bytes",
)

# One series per rule so a cleared recommendation drops back to 0
RECOMMENDATIONS_ACTIVE = Gauge(
    "memory_recommendations_active",
    "Whether a recommendation is currently raised",
    ["kind", "severity"],
)

SAMPLES_INGESTED = Counter(
    "memory_samples_ingested_total",
    "Samples accepted by the aggregation service",
)

SAMPLES_REJECTED = Counter(
    "memory_samples_rejected_total",
    "Messages dropped because they did not decode into a valid sample",
)


def record_derived_metrics(metrics: DerivedMetrics, recommendations: List[Recommendation]) -> None:
    """Update Prometheus metrics after a sample has been ingested."""
    FRAGMENTATION_RATIO.set(metrics.fragmentation)
    PRESSURE_SCORE.set(metrics.pressure_score)
    PAGE_FAULT_RATE.set(metrics.page_fault_rate)
    SWAP_USAGE_PERCENT.set(metrics.swap_usage_percent)
    USED_BYTES.set(metrics.used_bytes)
    SAMPLES_INGESTED.inc()

    raised = {(r.kind, r.severity) for r in recommendations}
    for kind in RecommendationKind:
        for severity in Severity:
            RECOMMENDATIONS_ACTIVE.labels(kind=kind.value, severity=severity.value).set(
                1 if (kind, severity) in raised else 0
            )
