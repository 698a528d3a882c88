from __future__ import annotations

import copy
import json
import logging
from datetime import date
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Optional, Protocol, Tuple
from uuid import uuid4

from services.numeric import coerce_number
from services.timestamps import TimestampUnit
from settings import get_settings

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]
RecordCallback = Callable[[Optional[RawRecord]], None]
ErrorCallback = Callable[[Exception], None]
Disposer = Callable[[], None]


class TelemetryUnavailableError(RuntimeError):
    """The telemetry source could not be reached or refused access."""


class TelemetrySource(Protocol):
    timestamp_unit: TimestampUnit

    def subscribe(
        self, callback: RecordCallback, on_error: Optional[ErrorCallback] = None
    ) -> Disposer: ...

    def query_range(self, start: int) -> Dict[str, RawRecord]: ...

    def query_day(self, day: date) -> Dict[str, RawRecord]: ...


class InMemoryTelemetrySource:
    """Local telemetry store with optional JSON persistence.

    Historical records are returned exactly as ingested; validation is left to
    the consumer, as with a real remote source.
    """

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        timestamp_unit: TimestampUnit = TimestampUnit.seconds,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self.timestamp_unit = TimestampUnit(timestamp_unit)
        self._records: Dict[str, Any] = {}
        self._hourly: Dict[str, Dict[str, Any]] = {}
        self._latest: Optional[RawRecord] = None
        self._subscribers: Dict[int, Tuple[RecordCallback, Optional[ErrorCallback]]] = {}
        self._next_token = 0
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def ingest(self, record: RawRecord, key: Optional[str] = None) -> str:
        """Append a record to history and publish it as the latest reading."""
        record_key = key or uuid4().hex
        with self._lock:
            self._records[record_key] = copy.deepcopy(record)
            self._persist()
        self.publish_latest(record)
        return record_key

    def put_record(self, record: Any, key: Optional[str] = None) -> str:
        """Store a historical record without notifying live subscribers."""
        record_key = key or uuid4().hex
        with self._lock:
            self._records[record_key] = copy.deepcopy(record)
            self._persist()
        return record_key

    def put_hourly_aggregate(self, day: date, hour: int, record: RawRecord) -> None:
        with self._lock:
            self._hourly.setdefault(day.isoformat(), {})[str(hour)] = copy.deepcopy(record)
            self._persist()

    def publish_latest(self, record: Optional[RawRecord]) -> None:
        with self._lock:
            self._latest = copy.deepcopy(record)
            self._persist()
            listeners = list(self._subscribers.values())
        for callback, _on_error in listeners:
            callback(copy.deepcopy(record))

    def report_error(self, error: Exception) -> None:
        """Deliver a read failure to every subscriber."""
        with self._lock:
            listeners = list(self._subscribers.values())
        logger.error("Telemetry read error: %s", error, extra={"source": self.name})
        for callback, on_error in listeners:
            if on_error is not None:
                on_error(error)
            else:
                callback(None)

    def subscribe(
        self, callback: RecordCallback, on_error: Optional[ErrorCallback] = None
    ) -> Disposer:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = (callback, on_error)
            latest = copy.deepcopy(self._latest)

        callback(latest)

        def dispose() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return dispose

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def query_range(self, start: int) -> Dict[str, RawRecord]:
        """Records whose timestamp, in the source unit, is at or after ``start``."""
        with self._lock:
            items = list(self._records.items())
        selected: Dict[str, RawRecord] = {}
        for key, record in items:
            if not isinstance(record, dict):
                continue
            timestamp = coerce_number(record.get("timestamp"))
            if timestamp is not None and timestamp >= start:
                selected[key] = copy.deepcopy(record)
        return selected

    def query_day(self, day: date) -> Dict[str, RawRecord]:
        with self._lock:
            return copy.deepcopy(self._hourly.get(day.isoformat(), {}))

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            "records": self._records,
            "hourly": self._hourly,
            "latest": self._latest,
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable telemetry snapshot",
                extra={"source": self.name, "reason": "corrupt persistence file"},
            )
            data = {}

        self._records = dict(data.get("records") or {})
        self._hourly = dict(data.get("hourly") or {})
        self._latest = data.get("latest")


@lru_cache
def build_default_source(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> InMemoryTelemetrySource:
    settings = get_settings()
    source_name = settings.source_name if name is None else name
    source_path = settings.source_persistence_path if path is None else path
    persistence = Path(source_path) if source_path else None
    return InMemoryTelemetrySource(
        name=source_name,
        persistence_path=persistence,
        timestamp_unit=TimestampUnit(settings.timestamp_unit),
    )
