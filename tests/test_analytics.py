"""Tests for the historical analytics service."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from app.schemas import TimeRange
from datastore.telemetry import InMemoryTelemetrySource, TelemetryUnavailableError
from models.metrics import HUMIDITY, SCORE, TEMPERATURE, default_scoring_config
from services.analytics import AnalyticsService, WindowSelector, _resolve_timezone
from services.timestamps import TimestampUnit

NOW = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc).timestamp()
TODAY = date(2024, 1, 2)


def _seconds(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


@pytest.fixture()
def source() -> InMemoryTelemetrySource:
    source = InMemoryTelemetrySource(name="environmental_data")
    source.put_record({"timestamp": _seconds(2024, 1, 2, 3), TEMPERATURE: 22, HUMIDITY: 50}, key="a")
    source.put_record(
        {"timestamp": str(_seconds(2024, 1, 2, 9)), TEMPERATURE: 31, HUMIDITY: 45, "score": "6.5"},
        key="b",
    )
    source.put_record({"timestamp": _seconds(2024, 1, 1, 20), TEMPERATURE: 17}, key="c")
    source.put_record({"timestamp": _seconds(2023, 12, 30, 8), TEMPERATURE: 24, HUMIDITY: 55}, key="d")
    source.put_record({"timestamp": _seconds(2023, 11, 1, 8), TEMPERATURE: 24}, key="e")
    source.put_record({"timestamp": 10**18, TEMPERATURE: 24}, key="overflow")
    return source


def _service(source, **kwargs) -> AnalyticsService:
    return AnalyticsService(source, default_scoring_config(), clock=lambda: NOW, **kwargs)


def test_window_start_is_relative_to_now(source: InMemoryTelemetrySource) -> None:
    service = _service(source)

    assert service.window_start(TimeRange.last_24h) == int(NOW * 1000) - 86_400_000
    assert service.window_start(TimeRange.last_30d) == int(NOW * 1000) - 30 * 86_400_000


def test_load_series_is_bounded_to_window_and_sorted(source: InMemoryTelemetrySource) -> None:
    service = _service(source)

    day = service.load_series(TimeRange.last_24h)
    week = service.load_series(TimeRange.last_7d)
    month = service.load_series(TimeRange.last_30d)

    assert [reading.value(TEMPERATURE) for reading in day.series] == [17.0, 22.0, 31.0]
    assert len(week.series) == 4
    assert len(month.series) == 4
    assert [item.key for item in day.skipped] == ["overflow"]


def test_window_start_is_inclusive() -> None:
    source = InMemoryTelemetrySource(name="environmental_data")
    source.put_record({"timestamp": int(NOW) - 86_400, TEMPERATURE: 22})
    service = _service(source)

    assert len(service.load_series(TimeRange.last_24h).series) == 1


def test_missing_scores_are_computed_and_stored_scores_kept(source: InMemoryTelemetrySource) -> None:
    service = _service(source)

    series = service.load_series(TimeRange.last_24h).series
    scores = {reading.value(TEMPERATURE): reading.score for reading in series}

    assert scores[31.0] == 6.5
    assert scores[22.0] == 10.0
    assert 0 < scores[17.0] < 5


def test_out_of_range_stored_scores_are_recomputed() -> None:
    source = InMemoryTelemetrySource(name="environmental_data")
    source.put_record({"timestamp": int(NOW) - 120, TEMPERATURE: 22, "score": 42})
    source.put_record({"timestamp": int(NOW) - 60, TEMPERATURE: 22, "score": -3})
    service = _service(source)

    report = service.report(TimeRange.last_24h)

    assert report.statistics[SCORE].min == 10.0
    assert report.statistics[SCORE].max == 10.0
    assert [item.count for item in report.distributions[SCORE].bins] == [0, 0, 0, 0, 2]
    assert service.export_csv(TimeRange.last_24h).split("\n")[1].endswith(",10.0")


def test_report_summarizes_window(source: InMemoryTelemetrySource, caplog) -> None:
    service = _service(source)

    with caplog.at_level(logging.INFO, logger="services.analytics"):
        report = service.report(TimeRange.last_24h)

    assert report.window is TimeRange.last_24h
    assert report.reading_count == 3
    assert report.skipped_count == 1
    assert set(report.statistics) == set(default_scoring_config().names) | {SCORE}
    assert report.statistics[TEMPERATURE].min == 17.0
    assert report.statistics[TEMPERATURE].max == 31.0
    assert report.statistics[TEMPERATURE].latest == 31.0
    assert report.statistics["airQuality_ppm"].avg is None

    temperature = report.distributions[TEMPERATURE]
    assert [item.count for item in temperature.bins] == [0, 1, 1, 0, 1]
    assert temperature.bins[0].lower is None
    assert temperature.bins[-1].upper is None
    assert report.distributions[SCORE].total == 3

    assert [(point.x, point.y) for point in report.correlation.points] == [(22.0, 50.0), (31.0, 45.0)]
    assert report.generated_at == datetime.fromtimestamp(NOW, tz=timezone.utc)
    assert any(getattr(record, "window", None) == "24h" for record in caplog.records)


def test_report_on_empty_source_is_well_formed() -> None:
    service = _service(InMemoryTelemetrySource(name="environmental_data"))

    report = service.report(TimeRange.last_7d)

    assert report.reading_count == 0
    assert all(item.avg is None for item in report.statistics.values())
    assert report.distributions[TEMPERATURE].has_data is False
    assert report.correlation.points == []
    assert report.hourly.hours == []


def test_hourly_pattern_is_computed_from_readings(source: InMemoryTelemetrySource) -> None:
    service = _service(source)

    pattern = service.hourly_pattern()

    assert pattern.day == TODAY
    assert pattern.source == "computed"
    assert [item.label for item in pattern.hours] == ["03:00", "09:00"]
    assert pattern.hours[1].averages[SCORE] == 6.5


def test_hourly_pattern_prefers_source_rollups(source: InMemoryTelemetrySource) -> None:
    source.put_hourly_aggregate(TODAY, 14, {"avgTemperature": 24.5, "readings": 12})
    service = _service(source)

    pattern = service.hourly_pattern(TODAY)

    assert pattern.source == "source"
    assert [(item.hour, item.reading_count) for item in pattern.hours] == [(14, 12)]
    assert pattern.hours[0].averages == {TEMPERATURE: 24.5}


def test_hourly_pattern_for_a_past_day(source: InMemoryTelemetrySource) -> None:
    service = _service(source)

    pattern = service.hourly_pattern(date(2024, 1, 1))

    assert [item.label for item in pattern.hours] == ["20:00"]


def test_hourly_pattern_uses_configured_timezone(source: InMemoryTelemetrySource) -> None:
    service = _service(source, tz=ZoneInfo("Asia/Singapore"))

    pattern = service.hourly_pattern(TODAY)

    # 20:00 UTC on Jan 1 and 03:00 UTC on Jan 2 fall on Jan 2 in Singapore.
    assert [item.label for item in pattern.hours] == ["04:00", "11:00", "17:00"]


def test_export_csv_has_one_row_per_reading(source: InMemoryTelemetrySource) -> None:
    service = _service(source)

    lines = service.export_csv(TimeRange.last_24h).split("\n")

    assert lines[0] == "timestamp,date,time,temperature,humidity,airQuality_ppm,soundLevel,score"
    assert len(lines) == 4
    assert lines[-1].endswith(",6.5")


def test_export_of_empty_window_is_empty() -> None:
    service = _service(InMemoryTelemetrySource(name="environmental_data"))

    assert service.export_csv(TimeRange.last_24h) == ""


def test_milliseconds_source_is_queried_in_its_own_unit() -> None:
    source = InMemoryTelemetrySource(
        name="environmental_data", timestamp_unit=TimestampUnit.milliseconds
    )
    source.put_record({"timestamp": int(NOW * 1000) - 1000, TEMPERATURE: 22})
    source.put_record({"timestamp": int(NOW * 1000) - 2 * 86_400_000, TEMPERATURE: 22})

    assert len(_service(source).load_series(TimeRange.last_24h).series) == 1


def test_unavailable_source_propagates() -> None:
    class FailingSource:
        timestamp_unit = TimestampUnit.seconds

        def subscribe(self, callback, on_error=None):
            raise TelemetryUnavailableError("offline")

        def query_range(self, start):
            raise TelemetryUnavailableError("permission denied")

        def query_day(self, day):
            raise TelemetryUnavailableError("permission denied")

    service = _service(FailingSource())

    with pytest.raises(TelemetryUnavailableError):
        service.report(TimeRange.last_24h)


def test_drop_empty_excludes_records_without_metrics() -> None:
    source = InMemoryTelemetrySource(name="environmental_data")
    source.put_record({"timestamp": int(NOW) - 60})
    source.put_record({"timestamp": int(NOW) - 30, TEMPERATURE: 22})

    kept = _service(source).load_series(TimeRange.last_24h)
    dropped = _service(source, drop_empty=True).load_series(TimeRange.last_24h)

    assert len(kept.series) == 2
    assert kept.series[0].score is None
    assert len(dropped.series) == 1


def test_window_selector_discards_stale_results() -> None:
    selector: WindowSelector[str] = WindowSelector()

    first = selector.select(TimeRange.last_24h)
    second = selector.select(TimeRange.last_7d)

    assert selector.current_window is TimeRange.last_7d
    assert selector.accept(first, "old report") is None
    assert selector.accept(second, "new report") == "new report"
    assert selector.is_current(second)


def test_unknown_timezone_falls_back_to_utc(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="services.analytics"):
        tz = _resolve_timezone("Mars/Olympus_Mons")

    assert tz is timezone.utc
    assert any("falling back" in record.getMessage() for record in caplog.records)
