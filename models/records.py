"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional

from models.metrics import SCORE


@dataclass(frozen=True, slots=True)
class Reading:
    """One normalized telemetry record.

    ``values`` only ever holds finite floats; a metric that was missing or
    malformed at ingestion is simply absent.
    """

    timestamp: int
    values: Mapping[str, float] = field(default_factory=dict)
    score: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def value(self, metric: str) -> Optional[float]:
        if metric == SCORE:
            return self.score
        return self.values.get(metric)

    @property
    def has_metrics(self) -> bool:
        return bool(self.values)

    def with_score(self, score: float) -> "Reading":
        return replace(self, values=dict(self.values), score=score)


@dataclass(frozen=True, slots=True)
class HourlyAggregate:
    """Per hour-of-day averages for a single day."""

    hour: int
    averages: Mapping[str, float]
    reading_count: int

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:00"


@dataclass(frozen=True, slots=True)
class MetricStatistics:
    """Summary of one metric over a series. ``None`` means unavailable."""

    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    latest: Optional[float] = None

    @property
    def available(self) -> bool:
        return self.avg is not None


@dataclass(frozen=True, slots=True)
class BinBoundary:
    label: str
    lower: float
    upper: Optional[float] = None


@dataclass(frozen=True, slots=True)
class DistributionBin:
    label: str
    lower: float
    upper: Optional[float]
    count: int = 0


@dataclass(frozen=True)
class Distribution:
    metric: str
    bins: tuple[DistributionBin, ...]

    @property
    def total(self) -> int:
        return sum(item.count for item in self.bins)

    @property
    def has_data(self) -> bool:
        return self.total > 0


@dataclass(frozen=True, slots=True)
class CorrelationPoint:
    timestamp: int
    x: float
    y: float
