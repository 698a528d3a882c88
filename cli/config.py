from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30.0
DEFAULT_WINDOW = "7d"
WINDOWS = ("24h", "7d", "30d")


@dataclass(frozen=True)
class CLIConfig:
    """Connection and display defaults for the command line client.

    Resolved from ``API_BASE_URL``, ``CLI_REQUEST_TIMEOUT`` and
    ``CLI_DEFAULT_RANGE``; explicit arguments take precedence.
    """

    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = DEFAULT_TIMEOUT
    default_window: str = DEFAULT_WINDOW


def _env_timeout() -> float:
    raw = (os.getenv("CLI_REQUEST_TIMEOUT") or "").strip()
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT
    return value if value > 0 else DEFAULT_TIMEOUT


def _env_window() -> str:
    raw = (os.getenv("CLI_DEFAULT_RANGE") or "").strip().lower()
    return raw if raw in WINDOWS else DEFAULT_WINDOW


def load_config(
    base_url: Optional[str] = None,
    request_timeout: Optional[float] = None,
) -> CLIConfig:
    url = base_url or os.getenv("API_BASE_URL") or DEFAULT_BASE_URL
    return CLIConfig(
        base_url=url.rstrip("/"),
        request_timeout=_env_timeout() if request_timeout is None else request_timeout,
        default_window=_env_window(),
    )
