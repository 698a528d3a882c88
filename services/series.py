"""Validation and ordering of raw telemetry snapshots into a reading series."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from models.metrics import SCORE
from models.records import Reading
from services.numeric import coerce_number
from services.scoring import MAX_SCORE, MIN_SCORE
from services.timestamps import InvalidTimestampError, TimestampNormalizer

logger = logging.getLogger(__name__)

RawSnapshot = Union[Mapping[str, Any], Iterable[Any], None]


@dataclass(frozen=True, slots=True)
class SkippedRecord:
    """A raw record that could not become a reading."""

    key: str
    reason: str


@dataclass(frozen=True)
class SeriesBuildResult:
    series: Tuple[Reading, ...] = ()
    skipped: Tuple[SkippedRecord, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.series)


class HistoricalSeriesBuilder:
    """Turn an unordered telemetry snapshot into a time-ordered series.

    Records are rejected only for a missing container shape or an invalid
    timestamp. Bad metric fields are dropped one by one. A record without any
    valid metric is kept unless ``drop_empty`` is set.
    """

    def __init__(
        self,
        normalizer: TimestampNormalizer,
        metric_names: Sequence[str],
        drop_empty: bool = False,
    ) -> None:
        self.normalizer = normalizer
        self.metric_names = tuple(name for name in metric_names if name != SCORE)
        self.drop_empty = drop_empty

    def build(self, raw: RawSnapshot) -> SeriesBuildResult:
        readings: list[Reading] = []
        skipped: list[SkippedRecord] = []

        for key, record in self._iter_entries(raw):
            if not isinstance(record, Mapping):
                self._skip(skipped, key, "not a record", record)
                continue

            try:
                reading = self.build_reading(record, key=key)
            except InvalidTimestampError:
                self._skip(skipped, key, "invalid timestamp", record.get("timestamp"))
                continue

            if self.drop_empty and not reading.has_metrics:
                self._skip(skipped, key, "no metric values", None)
                continue

            readings.append(reading)

        readings.sort(key=lambda reading: reading.timestamp)

        if not readings and skipped:
            logger.warning(
                "All records in snapshot were skipped",
                extra={"skipped_count": len(skipped)},
            )
        return SeriesBuildResult(series=tuple(readings), skipped=tuple(skipped))

    def build_reading(self, record: Mapping[str, Any], key: str = "") -> Reading:
        """Normalize one record; raises ``InvalidTimestampError`` on a bad timestamp."""
        timestamp = self.normalizer.normalize(record.get("timestamp"))
        values, score = self.extract_values(record, key=key)
        return Reading(timestamp=timestamp, values=values, score=score)

    def extract_values(
        self, record: Mapping[str, Any], key: str = ""
    ) -> Tuple[Dict[str, float], Optional[float]]:
        """Valid metric values and the derived score carried by ``record``."""
        values: Dict[str, float] = {}
        for name in self.metric_names:
            value = self._coerce_field(record, name, key)
            if value is not None:
                values[name] = value

        score = self._coerce_field(record, SCORE, key)
        if score is not None and not MIN_SCORE <= score <= MAX_SCORE:
            logger.debug(
                "Dropping out-of-range score",
                extra={"record_key": key or None, "metric": SCORE, "invalid_value": score},
            )
            score = None
        return values, score

    @staticmethod
    def _coerce_field(record: Mapping[str, Any], name: str, key: str) -> Optional[float]:
        if name not in record or record[name] is None:
            return None
        value = coerce_number(record[name])
        if value is None:
            logger.debug(
                "Dropping non-numeric field",
                extra={"record_key": key or None, "metric": name, "invalid_value": record[name]},
            )
        return value

    @staticmethod
    def _iter_entries(raw: RawSnapshot) -> Iterable[Tuple[str, Any]]:
        if raw is None:
            return ()
        if isinstance(raw, Mapping):
            return ((str(key), value) for key, value in raw.items())
        if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
            logger.warning(
                "Ignoring snapshot that is not a collection of records",
                extra={"reason": "not a snapshot", "invalid_value": raw},
            )
            return ()
        return ((str(index), value) for index, value in enumerate(raw))

    @staticmethod
    def _skip(skipped: list[SkippedRecord], key: str, reason: str, value: Any) -> None:
        skipped.append(SkippedRecord(key=key, reason=reason))
        logger.warning(
            "Skipping record %s: %s",
            key,
            reason,
            extra={"record_key": key, "reason": reason, "invalid_value": value},
        )
