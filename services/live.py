"""Live score tracking driven by the telemetry subscription."""

from __future__ import annotations

import logging
import time
from collections import deque
from datetime import datetime, timezone
from functools import lru_cache
from threading import Lock
from typing import Any, Callable, Deque, List, Optional

from app.schemas import AlertModel, LiveState, LiveStatus, MetricScoreModel
from datastore.telemetry import Disposer, TelemetrySource, build_default_source
from models.metrics import ScoringConfig, default_scoring_config
from models.records import Reading
from services.alerts import Alert, AlertThrottle
from services.scoring import ScoreComposer, score_label
from services.series import HistoricalSeriesBuilder
from services.timestamps import InvalidTimestampError, TimestampNormalizer

logger = logging.getLogger(__name__)


class LiveMonitor:
    """Keeps the most recent reading and its composite score.

    Every arrival replaces the previous state. A ``None`` delivery means the
    source has no current reading, and a delivery error switches the state to
    ``error`` until the next successful record.
    """

    ALERT_HISTORY = 50

    def __init__(
        self,
        source: TelemetrySource,
        config: ScoringConfig,
        alerts: Optional[AlertThrottle] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.source = source
        self.composer = ScoreComposer(config)
        self.builder = HistoricalSeriesBuilder(
            TimestampNormalizer(source.timestamp_unit), config.names
        )
        self.alerts = alerts
        self._clock = clock
        self._state = LiveState(status=LiveStatus.waiting)
        self._state_lock = Lock()
        self._dispose: Optional[Disposer] = None
        self._alerts: Deque[Alert] = deque(maxlen=self.ALERT_HISTORY)

    @property
    def state(self) -> LiveState:
        with self._state_lock:
            return self._state.model_copy(deep=True)

    @property
    def running(self) -> bool:
        return self._dispose is not None

    def recent_alerts(self) -> List[AlertModel]:
        """Alerts raised by this monitor, oldest first, at most ``ALERT_HISTORY``."""
        with self._state_lock:
            alerts = list(self._alerts)
        return [
            AlertModel(
                kind=alert.kind,
                score=alert.score,
                message=alert.message,
                raised_at=datetime.fromtimestamp(alert.raised_at, tz=timezone.utc),
            )
            for alert in alerts
        ]

    def start(self) -> None:
        if self._dispose is not None:
            return
        self._dispose = self.source.subscribe(self.handle_record, on_error=self.handle_error)

    def stop(self) -> None:
        if self._dispose is None:
            return
        self._dispose()
        self._dispose = None

    def handle_record(self, record: Any) -> None:
        if record is None:
            logger.info("No live reading available", extra={"status": LiveStatus.no_data.value})
            self._set_state(LiveState(status=LiveStatus.no_data, updated_at=self._now()))
            return

        if not isinstance(record, dict):
            logger.warning(
                "Ignoring malformed live record",
                extra={"reason": "not a record", "invalid_value": record},
            )
            self._set_state(LiveState(status=LiveStatus.no_data, updated_at=self._now()))
            return

        reading = self._to_reading(record)
        breakdown = self.composer.breakdown(reading)
        score = self.composer.compose(reading)
        self._set_state(
            LiveState(
                status=LiveStatus.live,
                score=score,
                label=score_label(score),
                timestamp=reading.timestamp,
                metrics={
                    name: MetricScoreModel(
                        metric=item.metric,
                        value=item.value,
                        sub_score=item.sub_score,
                        weight=item.weight,
                        status=item.status,
                    )
                    for name, item in breakdown.items()
                },
                updated_at=self._now(),
            )
        )
        logger.debug("Live score updated", extra={"score": score})

        if self.alerts is not None and breakdown:
            alert = self.alerts.evaluate(score)
            if alert is not None:
                with self._state_lock:
                    self._alerts.append(alert)

    def handle_error(self, error: Exception) -> None:
        logger.error(
            "Live telemetry feed failed: %s",
            error,
            extra={"status": LiveStatus.error.value},
        )
        self._set_state(
            LiveState(status=LiveStatus.error, updated_at=self._now(), error=str(error))
        )

    def _to_reading(self, record: dict) -> Reading:
        values, _score = self.builder.extract_values(record, key="latest")
        try:
            timestamp = self.builder.normalizer.normalize(record.get("timestamp"))
        except InvalidTimestampError:
            timestamp = int(self._clock() * 1000)
        return Reading(timestamp=timestamp, values=values)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _set_state(self, state: LiveState) -> None:
        with self._state_lock:
            self._state = state


@lru_cache
def build_default_monitor() -> LiveMonitor:
    """Factory that wires the live monitor to the default telemetry source."""
    return LiveMonitor(
        source=build_default_source(),
        config=default_scoring_config(),
        alerts=AlertThrottle(),
    )
