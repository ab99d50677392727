import threading
from typing import List, Optional, Tuple

import structlog

from analytics.config import Config
from analytics.deriver import DEFAULT_PRESSURE_WEIGHTS, PressureWeights, derive_metrics
from analytics.errors import NoDataYet
from analytics.models import (
    DerivedMetrics,
    MemorySample,
    Recommendation,
    ServiceState,
    TimelinePoint,
    WindowEntry,
)
from analytics.rules import DiagnosticRuleEngine
from analytics.window import DEFAULT_CAPACITY, SlidingWindow

logger = structlog.get_logger(__name__)


class AggregationService:
    """Ingests raw samples and publishes derived state plus windowed history.

    One writer calls ingest(); readers may call the query methods from other
    threads. All state sits behind one short lock and readers get copies.
    """

    def __init__(
        self,
        window_capacity: int = DEFAULT_CAPACITY,
        rule_engine: Optional[DiagnosticRuleEngine] = None,
        weights: PressureWeights = DEFAULT_PRESSURE_WEIGHTS,
    ) -> None:
        self._window = SlidingWindow(window_capacity)
        self._rule_engine = rule_engine or DiagnosticRuleEngine()
        self._weights = weights
        self._lock = threading.Lock()

        self._latest_recommendations: List[Recommendation] = []
        self._ingested_count = 0
        self._peak_used_bytes = 0

    @classmethod
    def from_config(cls, config: Config) -> "AggregationService":
        return cls(
            window_capacity=config.window_capacity,
            rule_engine=DiagnosticRuleEngine.from_config(config),
            weights=PressureWeights(
                memory=config.pressure_memory_weight,
                swap=config.pressure_swap_weight,
            ),
        )

    def ingest(
        self, sample: MemorySample, observed_at: float
    ) -> Tuple[DerivedMetrics, List[Recommendation]]:
        with self._lock:
            previous = self._window.latest()
            elapsed = 0.0
            if previous is not None:
                elapsed = observed_at - previous.observed_at
                if elapsed <= 0:
                    logger.debug(
                        "Non-increasing sample timestamp",
                        observed_at=observed_at,
                        previous_observed_at=previous.observed_at,
                    )

            metrics = derive_metrics(
                sample, previous.sample if previous else None, elapsed, self._weights
            )
            self._window.push(WindowEntry(sample=sample, metrics=metrics, observed_at=observed_at))
            recommendations = self._rule_engine.evaluate(metrics)

            self._latest_recommendations = recommendations
            self._ingested_count += 1
            self._peak_used_bytes = max(self._peak_used_bytes, metrics.used_bytes)

        return metrics, list(recommendations)

    @property
    def has_data(self) -> bool:
        with self._lock:
            return self._window.latest() is not None

    @property
    def capacity(self) -> int:
        return self._window.capacity

    @property
    def ingested_count(self) -> int:
        with self._lock:
            return self._ingested_count

    @property
    def last_observed_at(self) -> Optional[float]:
        with self._lock:
            entry = self._window.latest()
            return entry.observed_at if entry else None

    @property
    def peak_used_bytes(self) -> int:
        with self._lock:
            return self._peak_used_bytes

    def latest(self) -> DerivedMetrics:
        with self._lock:
            entry = self._window.latest()
            if entry is None:
                raise NoDataYet()
            return entry.metrics

    def latest_recommendations(self) -> List[Recommendation]:
        with self._lock:
            if self._window.latest() is None:
                raise NoDataYet()
            return list(self._latest_recommendations)

    def state(self) -> ServiceState:
        """Latest metrics, recommendations, timestamp and peak taken together."""
        with self._lock:
            entry = self._window.latest()
            if entry is None:
                raise NoDataYet()
            return ServiceState(
                metrics=entry.metrics,
                recommendations=tuple(self._latest_recommendations),
                observed_at=entry.observed_at,
                peak_used_bytes=self._peak_used_bytes,
            )

    def history(self) -> List[WindowEntry]:
        with self._lock:
            return self._window.snapshot()

    def timeline(self) -> List[TimelinePoint]:
        """Project the window into points for a usage-over-time chart."""
        return [
            TimelinePoint(
                timestamp=entry.observed_at,
                used_memory=entry.metrics.used_bytes,
                available_memory=entry.sample.available,
                page_fault_rate=entry.metrics.page_fault_rate,
            )
            for entry in self.history()
        ]
