"""CSV rendering of a reading series for download."""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Iterable, Mapping, Sequence

from models.metrics import SCORE
from models.records import Reading


def reading_row(
    reading: Reading, metric_names: Sequence[str], tz: tzinfo = timezone.utc
) -> Dict[str, Any]:
    moment = datetime.fromtimestamp(reading.timestamp / 1000, tz=tz)
    row: Dict[str, Any] = {
        "timestamp": reading.timestamp,
        "date": moment.strftime("%Y-%m-%d"),
        "time": moment.strftime("%H:%M"),
    }
    for metric in metric_names:
        if metric != SCORE:
            row[metric] = reading.values.get(metric)
    row[SCORE] = reading.score
    return row


def rows_to_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    """Header from the first row's keys, then one line of values per row.

    String values are double-quoted with embedded quotes doubled; missing values
    render as empty cells.
    """
    rows = list(rows)
    if not rows:
        return ""
    header = list(rows[0].keys())
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(header)
    writer = csv.writer(buffer, quoting=csv.QUOTE_STRINGS, lineterminator="\n")
    for row in rows:
        writer.writerow([row.get(field) for field in header])
    return buffer.getvalue().removesuffix("\n")


def series_to_csv(
    series: Iterable[Reading], metric_names: Sequence[str], tz: tzinfo = timezone.utc
) -> str:
    return rows_to_csv(reading_row(reading, metric_names, tz) for reading in series)
