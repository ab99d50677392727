from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Tuple

from pydantic import BaseModel, Field, model_validator

# Kernel memory and fault counters are unsigned 64-bit
U64_MAX = 2**64 - 1


class MemorySample(BaseModel):
    """Raw memory counters captured at one instant.

    Memory fields are bytes, fault fields are cumulative counts. Counters a
    collector could not read default to zero.
    """

    # Core memory
    total: int = Field(ge=0, le=U64_MAX)
    free: int = Field(default=0, ge=0, le=U64_MAX)
    available: int = Field(default=0, ge=0, le=U64_MAX)
    buffers: int = Field(default=0, ge=0, le=U64_MAX)
    cached: int = Field(default=0, ge=0, le=U64_MAX)

    # Swap
    swap_total: int = Field(default=0, ge=0, le=U64_MAX)
    swap_free: int = Field(default=0, ge=0, le=U64_MAX)
    swap_cached: int = Field(default=0, ge=0, le=U64_MAX)

    # Memory states
    active: int = Field(default=0, ge=0, le=U64_MAX)
    inactive: int = Field(default=0, ge=0, le=U64_MAX)
    dirty: int = Field(default=0, ge=0, le=U64_MAX)
    mapped: int = Field(default=0, ge=0, le=U64_MAX)

    # Anonymous / file-backed
    anon_pages: int = Field(default=0, ge=0, le=U64_MAX)
    active_anon: int = Field(default=0, ge=0, le=U64_MAX)
    inactive_anon: int = Field(default=0, ge=0, le=U64_MAX)
    active_file: int = Field(default=0, ge=0, le=U64_MAX)
    inactive_file: int = Field(default=0, ge=0, le=U64_MAX)

    # Kernel
    slab: int = Field(default=0, ge=0, le=U64_MAX)
    kernel_stack: int = Field(default=0, ge=0, le=U64_MAX)
    page_tables: int = Field(default=0, ge=0, le=U64_MAX)
    committed: int = Field(default=0, ge=0, le=U64_MAX)
    vmalloc_used: int = Field(default=0, ge=0, le=U64_MAX)

    # Page faults (cumulative)
    major_faults: int = Field(default=0, ge=0, le=U64_MAX)
    minor_faults: int = Field(default=0, ge=0, le=U64_MAX)

    model_config = {"frozen": True, "extra": "ignore"}

    @model_validator(mode="after")
    def _check_bounds(self) -> "MemorySample":
        if self.free > self.total:
            raise ValueError(f"free ({self.free}) exceeds total ({self.total})")
        if self.available > self.total:
            raise ValueError(f"available ({self.available}) exceeds total ({self.total})")
        if self.swap_free > self.swap_total:
            raise ValueError(
                f"swap_free ({self.swap_free}) exceeds swap_total ({self.swap_total})"
            )
        return self

    @property
    def total_faults(self) -> int:
        return self.major_faults + self.minor_faults


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class RecommendationKind(str, Enum):
    FRAGMENTATION = "fragmentation"
    PRESSURE = "pressure"
    SWAP = "swap"


@dataclass(frozen=True)
class DerivedMetrics:
    fragmentation: float
    pressure_score: float
    page_fault_rate: float
    swap_usage_percent: float
    used_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Recommendation:
    kind: RecommendationKind
    severity: Severity
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class WindowEntry:
    """A sample retained in the window with the metrics derived when it arrived."""

    sample: MemorySample
    metrics: DerivedMetrics
    observed_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "observed_at": self.observed_at,
            "sample": self.sample.model_dump(),
            "metrics": self.metrics.to_dict(),
        }


@dataclass(frozen=True)
class TimelinePoint:
    timestamp: float
    used_memory: int
    available_memory: int
    page_fault_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ServiceState:
    """Latest derived state, read as one unit."""

    metrics: DerivedMetrics
    recommendations: Tuple[Recommendation, ...]
    observed_at: float
    peak_used_bytes: int
