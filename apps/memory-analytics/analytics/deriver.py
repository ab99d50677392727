import math
from dataclasses import dataclass
from typing import Optional

import structlog

from analytics.models import DerivedMetrics, MemorySample

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PressureWeights:
    """Blend of memory scarcity and swap saturation in the pressure score."""

    memory: float = 0.7
    swap: float = 0.3


DEFAULT_PRESSURE_WEIGHTS = PressureWeights()


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, _finite(value)))


def _clamp01(value: float) -> float:
    return _clamp(value, 0.0, 1.0)


def _memory_used_ratio(sample: MemorySample) -> float:
    if sample.total == 0:
        return 0.0
    return 1.0 - (sample.available / sample.total)


def _swap_used_ratio(sample: MemorySample) -> float:
    if sample.swap_total == 0:
        return 0.0
    return (sample.swap_total - sample.swap_free) / sample.swap_total


def _page_fault_rate(
    current: MemorySample,
    previous: Optional[MemorySample],
    elapsed_seconds: float,
) -> float:
    if previous is None or not elapsed_seconds > 0:
        return 0.0
    delta = current.total_faults - previous.total_faults
    if delta < 0:
        # Cumulative counters went backwards, e.g. after a reboot.
        logger.debug(
            "Fault counter reset detected",
            previous_total=previous.total_faults,
            current_total=current.total_faults,
        )
        return 0.0
    try:
        rate = delta / elapsed_seconds
    except OverflowError:
        logger.debug("Fault delta out of float range", delta_bits=delta.bit_length())
        return 0.0
    return max(0.0, _finite(rate))


def derive_metrics(
    current: MemorySample,
    previous: Optional[MemorySample] = None,
    elapsed_seconds: float = 0.0,
    weights: PressureWeights = DEFAULT_PRESSURE_WEIGHTS,
) -> DerivedMetrics:
    """Derive health metrics from a sample and the one before it.

    Degenerate inputs (zero totals, counter resets, no elapsed time) produce
    zeroed terms rather than errors. Every output is finite and clamped to
    its documented range.
    """
    memory_used = _memory_used_ratio(current)
    swap_used = _swap_used_ratio(current)

    return DerivedMetrics(
        fragmentation=_clamp01(memory_used),
        pressure_score=_clamp01(weights.memory * memory_used + weights.swap * swap_used),
        page_fault_rate=_page_fault_rate(current, previous, elapsed_seconds),
        swap_usage_percent=_clamp(100.0 * swap_used, 0.0, 100.0),
        used_bytes=max(0, current.total - current.available),
    )
