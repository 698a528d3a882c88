"""Zone-based metric scoring and weighted composition of the living condition score."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from models.metrics import MetricConfig, Polarity, ScoringConfig
from models.records import Reading
from services.numeric import coerce_number, round_one_decimal

MAX_SCORE = 10.0
ACCEPTABLE_SCORE = 5.0
MIN_SCORE = 0.0


class MetricStatus(str, Enum):
    excellent = "excellent"
    good = "good"
    poor = "poor"
    unknown = "unknown"


def _clamp(score: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def _interpolate(distance: float, margin: float) -> float:
    """Linear 10 -> 5 as ``distance`` goes from 0 to ``margin``."""
    if margin <= 0:
        return ACCEPTABLE_SCORE
    return MAX_SCORE - (MAX_SCORE - ACCEPTABLE_SCORE) * (distance / margin)


def _decay(excess: float, decay: float) -> float:
    return ACCEPTABLE_SCORE * math.exp(-excess / decay)


def _score_range_optimal(value: float, config: MetricConfig) -> float:
    optimal, acceptable = config.optimal, config.acceptable
    if optimal.contains(value):
        return MAX_SCORE
    if acceptable.contains(value):
        if value < optimal.minimum:
            return _interpolate(optimal.minimum - value, optimal.minimum - acceptable.minimum)
        return _interpolate(value - optimal.maximum, acceptable.maximum - optimal.maximum)
    if value < acceptable.minimum:
        return _decay(acceptable.minimum - value, config.decay)
    return _decay(value - acceptable.maximum, config.decay)


def _score_lower_is_better(value: float, config: MetricConfig) -> float:
    optimal_max = config.optimal.maximum
    acceptable_max = config.acceptable.maximum
    if value <= optimal_max:
        return MAX_SCORE
    if value <= acceptable_max:
        return _interpolate(value - optimal_max, acceptable_max - optimal_max)
    return _decay(value - acceptable_max, config.decay)


def score_metric(value: float, config: MetricConfig) -> float:
    """Score a single metric value on the 0-10 scale.

    Inside the optimal zone the score is 10, across the acceptable margin it
    falls linearly to 5, and past the acceptable edge it decays exponentially
    toward 0 with the metric's decay constant.
    """
    if config.polarity is Polarity.lower_is_better:
        score = _score_lower_is_better(value, config)
    else:
        score = _score_range_optimal(value, config)
    return _clamp(score)


def classify_metric(value: Any, config: MetricConfig) -> MetricStatus:
    numeric = coerce_number(value)
    if numeric is None:
        return MetricStatus.unknown
    if config.polarity is Polarity.lower_is_better:
        if numeric <= config.optimal.maximum:
            return MetricStatus.excellent
        if numeric <= config.acceptable.maximum:
            return MetricStatus.good
        return MetricStatus.poor
    if config.optimal.contains(numeric):
        return MetricStatus.excellent
    if config.acceptable.contains(numeric):
        return MetricStatus.good
    return MetricStatus.poor


def score_label(score: float) -> str:
    if score >= 8:
        return "Excellent"
    if score >= 6:
        return "Good"
    if score >= 4:
        return "Fair"
    return "Poor"


@dataclass(frozen=True, slots=True)
class MetricScore:
    metric: str
    value: float
    sub_score: float
    weight: float
    status: MetricStatus


MetricSource = Union[Reading, Mapping[str, Any]]


class ScoreComposer:
    """Weighted mean of per-metric sub-scores over the metrics actually present."""

    def __init__(self, config: ScoringConfig) -> None:
        self.config = config

    def breakdown(self, source: Optional[MetricSource]) -> Dict[str, MetricScore]:
        if source is None:
            return {}
        results: Dict[str, MetricScore] = {}
        for metric in self.config:
            value = self._lookup(source, metric.name)
            if value is None:
                continue
            results[metric.name] = MetricScore(
                metric=metric.name,
                value=value,
                sub_score=score_metric(value, metric),
                weight=metric.weight,
                status=classify_metric(value, metric),
            )
        return results

    def compose(self, source: Optional[MetricSource]) -> float:
        scores = self.breakdown(source)
        weight_sum = sum(item.weight for item in scores.values())
        if weight_sum <= 0:
            return 0.0
        weighted = sum(item.sub_score * item.weight for item in scores.values())
        return round_one_decimal(_clamp(weighted / weight_sum))

    @staticmethod
    def _lookup(source: MetricSource, name: str) -> Optional[float]:
        if isinstance(source, Reading):
            return source.values.get(name)
        return coerce_number(source.get(name))
