"""Canonicalization of telemetry timestamps to epoch milliseconds."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any

MIN_VALID_YEAR = 1971


class TimestampUnit(str, Enum):
    """Resolution in which a telemetry source emits its timestamps."""

    seconds = "seconds"
    milliseconds = "milliseconds"

    @property
    def factor(self) -> int:
        return 1000 if self is TimestampUnit.seconds else 1


class InvalidTimestampError(ValueError):
    """Raised when a raw timestamp cannot be turned into a usable instant."""


class TimestampNormalizer:
    """Convert raw timestamps in a declared unit into epoch milliseconds.

    The unit is fixed per source. Values are never reinterpreted based on their
    magnitude, so a seconds source that suddenly emits milliseconds will produce
    far-future instants rather than being silently corrected.
    """

    def __init__(self, unit: TimestampUnit = TimestampUnit.seconds) -> None:
        self.unit = TimestampUnit(unit)

    def normalize(self, raw: Any) -> int:
        value = self._parse(raw)
        if value <= 0:
            raise InvalidTimestampError(f"Timestamp must be positive, got {raw!r}.")

        millis = value * self.unit.factor
        try:
            resolved = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise InvalidTimestampError(f"Timestamp {raw!r} is out of range.") from exc

        if resolved.year < MIN_VALID_YEAR:
            raise InvalidTimestampError(
                f"Timestamp {raw!r} resolves to {resolved.year}, before {MIN_VALID_YEAR}."
            )
        return millis

    def to_source_unit(self, millis: int) -> int:
        """Express a canonical instant in the source's own unit (rounded down)."""
        return millis // self.unit.factor

    @staticmethod
    def _parse(raw: Any) -> int:
        if raw is None or isinstance(raw, bool):
            raise InvalidTimestampError(f"Timestamp is missing or not numeric: {raw!r}.")

        if isinstance(raw, int):
            return raw

        if isinstance(raw, float):
            if not math.isfinite(raw):
                raise InvalidTimestampError(f"Timestamp is not finite: {raw!r}.")
            return int(raw)

        if isinstance(raw, str):
            candidate = raw.strip()
            if not candidate:
                raise InvalidTimestampError("Timestamp is empty.")
            try:
                return int(candidate)
            except ValueError:
                pass
            try:
                parsed = float(candidate)
            except ValueError as exc:
                raise InvalidTimestampError(f"Invalid timestamp format: {raw!r}.") from exc
            if not math.isfinite(parsed):
                raise InvalidTimestampError(f"Timestamp is not finite: {raw!r}.")
            return int(parsed)

        raise InvalidTimestampError(f"Unsupported timestamp type {type(raw).__name__}.")
