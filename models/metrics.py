"""Metric definitions and the scoring configuration table."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional


class Polarity(str, Enum):
    """How a metric's value maps onto comfort."""

    range_optimal = "range_optimal"
    lower_is_better = "lower_is_better"


@dataclass(frozen=True, slots=True)
class ValueRange:
    """Closed interval ``[minimum, maximum]``."""

    minimum: float
    maximum: float

    def __post_init__(self) -> None:
        if math.isnan(self.minimum) or math.isnan(self.maximum):
            raise ValueError("Range bounds must be numbers.")
        if self.minimum > self.maximum:
            raise ValueError(
                f"Range minimum {self.minimum} is greater than maximum {self.maximum}."
            )

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


@dataclass(frozen=True, slots=True)
class MetricConfig:
    """Scoring rules for one metric."""

    name: str
    weight: float
    polarity: Polarity
    optimal: ValueRange
    acceptable: ValueRange
    unit: str = ""
    decay: float = 100.0

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Metric name must not be empty.")
        if not (0 < self.weight <= 1):
            raise ValueError(f"Weight for {self.name!r} must be in (0, 1], got {self.weight}.")
        if not (self.decay > 0) or math.isinf(self.decay):
            raise ValueError(f"Decay for {self.name!r} must be a positive number, got {self.decay}.")


@dataclass(frozen=True)
class ScoringConfig:
    """Immutable, ordered set of metric configurations.

    Weights need not sum to one; they are renormalized over the metrics present
    in each reading at composition time.
    """

    metrics: tuple[MetricConfig, ...]

    def __post_init__(self) -> None:
        names = [metric.name for metric in self.metrics]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate metric names in scoring config: {', '.join(duplicates)}")

    def __iter__(self) -> Iterator[MetricConfig]:
        return iter(self.metrics)

    def __len__(self) -> int:
        return len(self.metrics)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(metric.name for metric in self.metrics)

    def get(self, name: str) -> Optional[MetricConfig]:
        for metric in self.metrics:
            if metric.name == name:
                return metric
        return None


TEMPERATURE = "temperature"
HUMIDITY = "humidity"
AIR_QUALITY = "airQuality_ppm"
SOUND_LEVEL = "soundLevel"
SCORE = "score"


def default_scoring_config() -> ScoringConfig:
    """The standard four-metric indoor comfort table."""
    return ScoringConfig(
        metrics=(
            MetricConfig(
                name=TEMPERATURE,
                weight=0.25,
                polarity=Polarity.range_optimal,
                optimal=ValueRange(20, 26),
                acceptable=ValueRange(18, 30),
                unit="°C",
                decay=5.0,
            ),
            MetricConfig(
                name=HUMIDITY,
                weight=0.25,
                polarity=Polarity.range_optimal,
                optimal=ValueRange(40, 60),
                acceptable=ValueRange(30, 70),
                unit="%",
                decay=10.0,
            ),
            MetricConfig(
                name=AIR_QUALITY,
                weight=0.3,
                polarity=Polarity.lower_is_better,
                optimal=ValueRange(0, 400),
                acceptable=ValueRange(0, 1000),
                unit="PPM",
                decay=1000.0,
            ),
            MetricConfig(
                name=SOUND_LEVEL,
                weight=0.2,
                polarity=Polarity.lower_is_better,
                optimal=ValueRange(0, 0.3),
                acceptable=ValueRange(0, 0.7),
                unit="Level",
                decay=0.5,
            ),
        )
    )
