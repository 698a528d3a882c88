"""Historical analytics over a telemetry window."""

from __future__ import annotations

import logging
import math
import time
from datetime import date, datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from threading import Lock
from typing import Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.schemas import (
    AnalyticsReport,
    CorrelationModel,
    CorrelationPointModel,
    DistributionBinModel,
    DistributionModel,
    HourlyAggregateModel,
    HourlyPattern,
    StatisticsModel,
    TimeRange,
)
from datastore.telemetry import TelemetrySource, build_default_source
from models.metrics import HUMIDITY, SCORE, TEMPERATURE, ScoringConfig, default_scoring_config
from models.records import Distribution, HourlyAggregate, Reading
from services.aggregator import HourlyAggregator, StatisticsCalculator, day_bounds, parse_hourly_records
from services.distribution import (
    SCORE_BANDS,
    TEMPERATURE_BANDS,
    CorrelationExtractor,
    DistributionBinner,
)
from services.export import series_to_csv
from services.scoring import ScoreComposer
from services.series import HistoricalSeriesBuilder, SeriesBuildResult
from services.timestamps import TimestampNormalizer
from settings import get_settings

logger = logging.getLogger(__name__)

WINDOW_DURATIONS: Dict[TimeRange, timedelta] = {
    TimeRange.last_24h: timedelta(hours=24),
    TimeRange.last_7d: timedelta(days=7),
    TimeRange.last_30d: timedelta(days=30),
}

T = TypeVar("T")


class AnalyticsService:
    """Pulls a bounded batch from the telemetry source and summarizes it.

    Each call works on its own snapshot; nothing computed here is retained
    between calls.
    """

    def __init__(
        self,
        source: TelemetrySource,
        config: ScoringConfig,
        tz: tzinfo = timezone.utc,
        drop_empty: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.source = source
        self.config = config
        self.tz = tz
        self._clock = clock
        self.normalizer = TimestampNormalizer(source.timestamp_unit)
        self.builder = HistoricalSeriesBuilder(self.normalizer, config.names, drop_empty=drop_empty)
        self.composer = ScoreComposer(config)
        self.metric_names: Tuple[str, ...] = config.names + (SCORE,)
        self.hourly_aggregator = HourlyAggregator(self.metric_names, tz)
        self.statistics = StatisticsCalculator()
        self.binner = DistributionBinner()
        self.correlations = CorrelationExtractor()

    def window_start(self, window: TimeRange) -> int:
        now_ms = int(self._clock() * 1000)
        return now_ms - int(WINDOW_DURATIONS[window].total_seconds() * 1000)

    def load_series(self, window: TimeRange) -> SeriesBuildResult:
        return self._load_since(self.window_start(window))

    def hourly_pattern(self, day: Optional[date] = None) -> HourlyPattern:
        """Hourly averages for ``day`` (today by default).

        Rollups stored by the source win; without them the day's raw readings
        are aggregated here.
        """
        day = day or datetime.fromtimestamp(self._clock(), tz=self.tz).date()
        aggregates = parse_hourly_records(self.source.query_day(day), self.metric_names)
        origin = "source"
        if not aggregates:
            start_ms, end_ms = day_bounds(day, self.tz)
            loaded = self._load_since(start_ms)
            day_series = [
                reading for reading in loaded.series if start_ms <= reading.timestamp < end_ms
            ]
            aggregates = self.hourly_aggregator.aggregate(day_series)
            origin = "computed"

        return HourlyPattern(day=day, source=origin, hours=_hourly_models(aggregates))

    def report(self, window: TimeRange, day: Optional[date] = None) -> AnalyticsReport:
        start_ms = self.window_start(window)
        loaded = self._load_since(start_ms)
        series = loaded.series

        statistics = self.statistics.calculate(series, self.metric_names)
        distributions = {
            TEMPERATURE: self.binner.bin(series, TEMPERATURE, TEMPERATURE_BANDS),
            SCORE: self.binner.bin(series, SCORE, SCORE_BANDS),
        }
        points = self.correlations.extract(series, TEMPERATURE, HUMIDITY)

        report = AnalyticsReport(
            window=window,
            start_ms=start_ms,
            generated_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
            reading_count=len(series),
            skipped_count=len(loaded.skipped),
            statistics={
                metric: StatisticsModel(
                    avg=item.avg, min=item.min, max=item.max, latest=item.latest
                )
                for metric, item in statistics.items()
            },
            hourly=self.hourly_pattern(day),
            distributions={
                metric: _distribution_model(distribution)
                for metric, distribution in distributions.items()
            },
            correlation=CorrelationModel(
                x_metric=TEMPERATURE,
                y_metric=HUMIDITY,
                points=[
                    CorrelationPointModel(timestamp=point.timestamp, x=point.x, y=point.y)
                    for point in points
                ],
            ),
        )
        logger.info(
            "Analytics report generated",
            extra={
                "window": window.value,
                "reading_count": report.reading_count,
                "skipped_count": report.skipped_count,
            },
        )
        return report

    def export_csv(self, window: TimeRange) -> str:
        loaded = self.load_series(window)
        return series_to_csv(loaded.series, self.config.names, self.tz)

    def _load_since(self, start_ms: int) -> SeriesBuildResult:
        raw = self.source.query_range(self.normalizer.to_source_unit(start_ms))
        built = self.builder.build(raw)
        series = tuple(
            reading for reading in self._fill_scores(built.series) if reading.timestamp >= start_ms
        )
        return SeriesBuildResult(series=series, skipped=built.skipped)

    def _fill_scores(self, series: Iterable[Reading]) -> Iterable[Reading]:
        for reading in series:
            if reading.score is None and reading.has_metrics:
                yield reading.with_score(self.composer.compose(reading))
            else:
                yield reading


def _hourly_models(aggregates: Iterable[HourlyAggregate]) -> List[HourlyAggregateModel]:
    return [
        HourlyAggregateModel(
            hour=item.hour,
            label=item.label,
            averages=dict(item.averages),
            reading_count=item.reading_count,
        )
        for item in aggregates
    ]


def _bound(value: Optional[float]) -> Optional[float]:
    if value is None or math.isinf(value):
        return None
    return value


def _distribution_model(distribution: Distribution) -> DistributionModel:
    return DistributionModel(
        metric=distribution.metric,
        total=distribution.total,
        has_data=distribution.has_data,
        bins=[
            DistributionBinModel(
                label=item.label,
                lower=_bound(item.lower),
                upper=_bound(item.upper),
                count=item.count,
            )
            for item in distribution.bins
        ],
    )


class WindowSelector(Generic[T]):
    """Tracks the caller's current window so late results can be discarded.

    ``select`` hands out a token for each new selection. A result computed for
    an older token is stale once a newer window has been selected.

    The HTTP routes answer each request independently and do not use it. It is
    meant for long-lived callers that keep results around, such as a dashboard
    polling ``AnalyticsService.report`` while the user switches windows.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._generation = 0
        self._window: Optional[TimeRange] = None

    @property
    def current_window(self) -> Optional[TimeRange]:
        with self._lock:
            return self._window

    def select(self, window: TimeRange) -> int:
        with self._lock:
            self._generation += 1
            self._window = window
            return self._generation

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._generation

    def accept(self, token: int, result: T) -> Optional[T]:
        if self.is_current(token):
            return result
        logger.debug("Discarding stale analytics result", extra={"status": "stale"})
        return None


def _resolve_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "Unknown timezone %s, falling back to UTC", name, extra={"reason": "invalid timezone"}
        )
        return timezone.utc


@lru_cache
def build_default_analytics() -> AnalyticsService:
    """Factory that wires analytics to the default telemetry source."""
    settings = get_settings()
    source = build_default_source()
    return AnalyticsService(
        source=source,
        config=default_scoring_config(),
        tz=_resolve_timezone(settings.timezone),
        drop_empty=settings.drop_empty_readings,
    )
