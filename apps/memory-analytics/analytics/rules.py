from abc import ABC, abstractmethod
from typing import List, Optional

from analytics.config import Config
from analytics.models import DerivedMetrics, Recommendation, RecommendationKind, Severity

FRAGMENTATION_THRESHOLD = 0.70
PRESSURE_THRESHOLD = 0.80
SWAP_USAGE_THRESHOLD = 80.0


class Rule(ABC):
    @abstractmethod
    def evaluate(self, metrics: DerivedMetrics) -> Optional[Recommendation]:
        ...


class FragmentationRule(Rule):
    """Fires when the fragmentation ratio exceeds threshold."""

    def __init__(self, threshold: float = FRAGMENTATION_THRESHOLD) -> None:
        self._threshold = threshold

    def evaluate(self, metrics: DerivedMetrics) -> Optional[Recommendation]:
        if metrics.fragmentation > self._threshold:
            return Recommendation(
                kind=RecommendationKind.FRAGMENTATION,
                severity=Severity.HIGH,
                message=(
                    "High memory fragmentation detected. "
                    "Consider compacting memory or restarting the application."
                ),
            )
        return None


class MemoryPressureRule(Rule):
    """Fires when the pressure score exceeds threshold."""

    def __init__(self, threshold: float = PRESSURE_THRESHOLD) -> None:
        self._threshold = threshold

    def evaluate(self, metrics: DerivedMetrics) -> Optional[Recommendation]:
        if metrics.pressure_score > self._threshold:
            return Recommendation(
                kind=RecommendationKind.PRESSURE,
                severity=Severity.HIGH,
                message=(
                    "System is under memory pressure. "
                    "Consider freeing up memory or adding more RAM."
                ),
            )
        return None


class SwapUsageRule(Rule):
    """Fires when swap usage (percent) exceeds threshold."""

    def __init__(self, threshold: float = SWAP_USAGE_THRESHOLD) -> None:
        self._threshold = threshold

    def evaluate(self, metrics: DerivedMetrics) -> Optional[Recommendation]:
        if metrics.swap_usage_percent > self._threshold:
            return Recommendation(
                kind=RecommendationKind.SWAP,
                severity=Severity.MEDIUM,
                message="High swap usage detected. This may impact system performance.",
            )
        return None


class DiagnosticRuleEngine:
    """Evaluates the rule table against derived metrics.

    Rules run in table order; the result is sorted by descending severity and
    the sort is stable, so equal severities keep table order.
    """

    def __init__(self, rules: Optional[List[Rule]] = None) -> None:
        if rules is None:
            rules = [FragmentationRule(), MemoryPressureRule(), SwapUsageRule()]
        self._rules: List[Rule] = list(rules)

    @classmethod
    def from_config(cls, config: Config) -> "DiagnosticRuleEngine":
        return cls([
            FragmentationRule(config.fragmentation_threshold),
            MemoryPressureRule(config.pressure_threshold),
            SwapUsageRule(config.swap_usage_threshold),
        ])

    def evaluate(self, metrics: DerivedMetrics) -> List[Recommendation]:
        recommendations = []
        for rule in self._rules:
            recommendation = rule.evaluate(metrics)
            if recommendation is not None:
                recommendations.append(recommendation)
        return sorted(recommendations, key=lambda r: r.severity.rank, reverse=True)
