"""Aggregation logic for reading series."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from models.records import HourlyAggregate, MetricStatistics, Reading
from services.numeric import coerce_number, round_one_decimal

logger = logging.getLogger(__name__)


def hour_of_day(timestamp_ms: int, tz: tzinfo = timezone.utc) -> int:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz).hour


def day_bounds(day: date, tz: tzinfo = timezone.utc) -> Tuple[int, int]:
    """Epoch-millisecond ``[start, end)`` of a calendar day in ``tz``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


class HourlyAggregator:
    """Group a single day's readings by hour of day."""

    def __init__(self, metric_names: Sequence[str], tz: tzinfo = timezone.utc) -> None:
        self.metric_names = tuple(metric_names)
        self.tz = tz

    def aggregate(self, series: Iterable[Reading]) -> List[HourlyAggregate]:
        counts: Dict[int, int] = {}
        totals: Dict[int, Dict[str, float]] = {}
        samples: Dict[int, Dict[str, int]] = {}

        for reading in series:
            hour = hour_of_day(reading.timestamp, self.tz)
            counts[hour] = counts.get(hour, 0) + 1
            hour_totals = totals.setdefault(hour, {})
            hour_samples = samples.setdefault(hour, {})
            for metric in self.metric_names:
                value = reading.value(metric)
                if value is None:
                    continue
                hour_totals[metric] = hour_totals.get(metric, 0.0) + value
                hour_samples[metric] = hour_samples.get(metric, 0) + 1

        return [
            HourlyAggregate(
                hour=hour,
                averages={
                    metric: totals[hour][metric] / samples[hour][metric]
                    for metric in self.metric_names
                    if samples[hour].get(metric)
                },
                reading_count=counts[hour],
            )
            for hour in sorted(counts)
        ]


def _average_field_names(metric: str) -> Tuple[str, ...]:
    capitalized = metric[:1].upper() + metric[1:]
    names = [f"avg{capitalized}"]
    if "_" in capitalized:
        names.append(f"avg{capitalized.split('_', 1)[0]}")
    return tuple(names)


def _parse_hour_key(key: Any) -> Optional[int]:
    try:
        hour = int(str(key).strip())
    except ValueError:
        return None
    return hour if 0 <= hour <= 23 else None


def parse_hourly_records(
    raw: Optional[Mapping[str, Any]], metric_names: Sequence[str]
) -> List[HourlyAggregate]:
    """Normalize source-side hourly rollups keyed by hour (``"0"`` .. ``"23"``).

    Averages are read from ``avg<Metric>`` fields and the count from ``readings``.
    Entries with an unusable hour key or a non-mapping body are skipped.
    """
    if not raw:
        return []

    aggregates: Dict[int, HourlyAggregate] = {}
    for key, record in raw.items():
        hour = _parse_hour_key(key)
        if hour is None or not isinstance(record, Mapping):
            logger.warning(
                "Skipping hourly record %s",
                key,
                extra={"record_key": key, "reason": "malformed hourly record"},
            )
            continue

        averages: Dict[str, float] = {}
        for metric in metric_names:
            for field_name in _average_field_names(metric):
                value = coerce_number(record.get(field_name))
                if value is not None:
                    averages[metric] = value
                    break

        count = coerce_number(record.get("readings"))
        aggregates[hour] = HourlyAggregate(
            hour=hour,
            averages=averages,
            reading_count=int(count) if count is not None and count > 0 else 0,
        )

    return [aggregates[hour] for hour in sorted(aggregates)]


class StatisticsCalculator:
    """Average, extrema and latest value per metric."""

    def calculate(
        self, series: Sequence[Reading], metric_names: Iterable[str]
    ) -> Dict[str, MetricStatistics]:
        return {metric: self.summarize(series, metric) for metric in metric_names}

    def summarize(self, series: Sequence[Reading], metric: str) -> MetricStatistics:
        count = 0
        total = 0.0
        minimum: float | None = None
        maximum: float | None = None
        latest: float | None = None
        latest_timestamp: int | None = None

        for reading in series:
            value = reading.value(metric)
            if value is None:
                continue
            count += 1
            total += value
            if minimum is None or value < minimum:
                minimum = value
            if maximum is None or value > maximum:
                maximum = value
            if latest_timestamp is None or reading.timestamp >= latest_timestamp:
                latest = value
                latest_timestamp = reading.timestamp

        if not count:
            return MetricStatistics()

        return MetricStatistics(
            avg=round_one_decimal(total / count),
            min=minimum,
            max=maximum,
            latest=latest,
        )
