from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Sequence

from settings import get_settings

# Context fields appended to every line when a log call passes them via ``extra``.
CONTEXT_KEYS = (
    "source",
    "window",
    "record_key",
    "metric",
    "status",
    "score",
    "reading_count",
    "skipped_count",
    "reason",
    "invalid_value",
)

LINE_FORMAT = "%(asctime)sZ %(levelname)-7s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_configured = False


def _render(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.6g}"
    text = str(value)
    return f'"{text}"' if " " in text else text


class ContextualFormatter(logging.Formatter):
    """Formatter that renders known ``extra`` fields as trailing ``key=value`` pairs.

    Timestamps are UTC. Fields left unset or set to ``None`` are omitted.
    """

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self.context_keys: Sequence[str] = tuple(
            CONTEXT_KEYS if context_keys is None else context_keys
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = []
        for key in self.context_keys:
            value = getattr(record, key, None)
            if value is not None:
                pairs.append(f"{key}={_render(value)}")
        return f"{line} :: {' '.join(pairs)}" if pairs else line


def build_logging_config(level: str | int) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "contextual": {
                "()": ContextualFormatter,
                "fmt": LINE_FORMAT,
                "datefmt": DATE_FORMAT,
                "context_keys": list(CONTEXT_KEYS),
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "contextual",
            }
        },
        # Request lines from the HTTP client drown out telemetry messages.
        "loggers": {"httpx": {"level": "WARNING"}},
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(level: str | int | None = None) -> None:
    """Apply :func:`build_logging_config` once per process.

    ``level`` overrides the ``LOG_LEVEL`` setting.
    """
    global _configured
    if _configured:
        return
    dictConfig(build_logging_config(get_settings().log_level if level is None else level))
    _configured = True
