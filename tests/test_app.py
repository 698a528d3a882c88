from datetime import date, datetime, timezone
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.telemetry import (
    InMemoryTelemetrySource,
    TelemetryUnavailableError,
    build_default_source,
)
from models.metrics import default_scoring_config
from services.alerts import AlertThrottle
from services.analytics import AnalyticsService, build_default_analytics
from services.live import LiveMonitor, build_default_monitor
from services.timestamps import TimestampUnit
from settings import get_settings

NOW = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc).timestamp()


def _cached(factory):
    instances = {}

    def build():
        if "instance" not in instances:
            instances["instance"] = factory()
        return instances["instance"]

    build.cache_clear = instances.clear  # type: ignore[attr-defined]
    return build


@pytest.fixture
def source() -> InMemoryTelemetrySource:
    return InMemoryTelemetrySource(name="test")


@pytest.fixture
def api_client(source: InMemoryTelemetrySource, monkeypatch) -> Iterator[TestClient]:
    config = default_scoring_config()
    build_test_source = _cached(lambda: source)
    build_test_monitor = _cached(
        lambda: LiveMonitor(source, config, alerts=AlertThrottle(clock=lambda: NOW), clock=lambda: NOW)
    )
    build_test_analytics = _cached(lambda: AnalyticsService(source, config, clock=lambda: NOW))

    monkeypatch.setattr("app.api.build_default_source", build_test_source)
    monkeypatch.setattr("app.api.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("app.main.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("app.api.build_default_analytics", build_test_analytics)
    monkeypatch.setattr("app.main.build_default_analytics", build_test_analytics)

    app = create_app()
    with TestClient(app) as client:
        yield client


def test_lifespan_stops_monitor_and_clears_cache(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TELEMETRY_PERSISTENCE_PATH", str(tmp_path / "telemetry.json"))
    for cache in (get_settings, build_default_source, build_default_monitor, build_default_analytics):
        cache.cache_clear()

    app = create_app()
    try:
        with TestClient(app):
            monitor_during = build_default_monitor()
            assert monitor_during.running is True

        assert monitor_during.running is False
        monitor_after = build_default_monitor()
        assert monitor_after is not monitor_during
        assert monitor_after.running is False
    finally:
        for cache in (build_default_monitor, build_default_analytics, build_default_source, get_settings):
            cache.cache_clear()


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_score_before_any_reading_reports_no_data(api_client: TestClient) -> None:
    response = api_client.get("/score")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "no_data"
    assert payload["score"] == 0.0


def test_pushed_reading_becomes_live_score(api_client: TestClient) -> None:
    response = api_client.post(
        "/readings",
        json={"timestamp": int(NOW) - 60, "temperature": 23, "humidity": 35},
    )

    assert response.status_code == 202
    assert set(response.json()) == {"key"}

    payload = api_client.get("/score").json()
    assert payload["status"] == "live"
    assert payload["score"] == 8.8
    assert payload["label"] == "Excellent"
    assert payload["metrics"]["humidity"]["status"] == "good"


def test_alerts_list_raised_notices(api_client: TestClient) -> None:
    assert api_client.get("/alerts").json() == []

    api_client.post("/readings", json={"timestamp": int(NOW) - 60, "temperature": 45})

    response = api_client.get("/alerts")

    assert response.status_code == 200
    (alert,) = response.json()
    assert alert["kind"] == "poor"
    assert alert["message"] == "Living conditions are poor! Check your environment."
    assert alert["score"] < 4


def test_empty_reading_is_rejected(api_client: TestClient) -> None:
    response = api_client.post("/readings", json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "Reading payload is empty."


def test_feed_error_is_reported(api_client: TestClient, source: InMemoryTelemetrySource) -> None:
    source.report_error(PermissionError("permission denied"))

    payload = api_client.get("/score").json()

    assert payload["status"] == "error"
    assert payload["error"] == "permission denied"


def test_config_lists_weights_and_ranges(api_client: TestClient) -> None:
    payload = api_client.get("/config").json()

    by_name = {item["name"]: item for item in payload["metrics"]}
    assert set(by_name) == {"temperature", "humidity", "airQuality_ppm", "soundLevel"}
    assert by_name["temperature"]["optimal"] == {"min": 20.0, "max": 26.0}
    assert by_name["airQuality_ppm"]["polarity"] == "lower_is_better"
    assert sum(item["weight"] for item in payload["metrics"]) == pytest.approx(1.0)


def test_analytics_report(api_client: TestClient, source: InMemoryTelemetrySource) -> None:
    source.put_record({"timestamp": int(NOW) - 3600, "temperature": 22, "humidity": 50})
    source.put_record({"timestamp": int(NOW) - 1800, "temperature": 31, "humidity": 45})
    source.put_record({"timestamp": int(NOW) - 10 * 86_400, "temperature": 10})

    response = api_client.get("/analytics", params={"range": "24h"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["window"] == "24h"
    assert payload["reading_count"] == 2
    assert payload["statistics"]["temperature"]["max"] == 31.0
    assert payload["statistics"]["soundLevel"]["avg"] is None
    assert payload["distributions"]["temperature"]["bins"][0]["lower"] is None
    assert len(payload["correlation"]["points"]) == 2
    assert payload["hourly"]["source"] == "computed"
    assert [hour["label"] for hour in payload["hourly"]["hours"]] == ["11:00"]


def test_analytics_rejects_unknown_range(api_client: TestClient) -> None:
    response = api_client.get("/analytics", params={"range": "1y"})

    assert response.status_code == 422


def test_hourly_for_requested_day(api_client: TestClient, source: InMemoryTelemetrySource) -> None:
    source.put_hourly_aggregate(date(2024, 1, 1), 14, {"avgTemperature": 24.5, "readings": 12})

    payload = api_client.get("/analytics/hourly", params={"day": "2024-01-01"}).json()

    assert payload["day"] == "2024-01-01"
    assert payload["source"] == "source"
    assert payload["hours"] == [
        {"hour": 14, "label": "14:00", "averages": {"temperature": 24.5}, "reading_count": 12}
    ]


def test_export_returns_csv(api_client: TestClient, source: InMemoryTelemetrySource) -> None:
    source.put_record({"timestamp": int(NOW) - 3600, "temperature": 22})

    response = api_client.get("/analytics/export", params={"range": "7d"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "environmental_analytics_7d.csv" in response.headers["content-disposition"]
    lines = response.text.split("\n")
    assert lines[0].startswith("timestamp,date,time,temperature")
    assert len(lines) == 2


def test_export_without_data_is_not_found(api_client: TestClient) -> None:
    response = api_client.get("/analytics/export", params={"range": "24h"})

    assert response.status_code == 404
    assert response.json()["detail"] == "No data to export."


class _UnavailableSource:
    timestamp_unit = TimestampUnit.seconds

    def subscribe(self, callback, on_error=None):
        callback(None)
        return lambda: None

    def query_range(self, start):
        raise TelemetryUnavailableError("permission denied")

    def query_day(self, day):
        raise TelemetryUnavailableError("permission denied")


def test_unavailable_source_maps_to_service_unavailable(monkeypatch) -> None:
    failing = _UnavailableSource()
    config = default_scoring_config()
    build_test_monitor = _cached(lambda: LiveMonitor(failing, config))
    build_test_analytics = _cached(lambda: AnalyticsService(failing, config, clock=lambda: NOW))
    monkeypatch.setattr("app.api.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("app.main.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("app.api.build_default_analytics", build_test_analytics)
    monkeypatch.setattr("app.main.build_default_analytics", build_test_analytics)

    with TestClient(create_app()) as client:
        for url in ("/analytics", "/analytics/hourly", "/analytics/export"):
            response = client.get(url)
            assert response.status_code == 503
            assert "permission denied" in response.json()["detail"]
