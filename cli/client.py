from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the living condition service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.request_timeout)

    def close(self) -> None:
        self._client.close()

    def push_reading(self, path: Path) -> str:
        try:
            record = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise typer.BadParameter(f"Could not read a JSON reading from {path}: {exc}") from exc
        if not isinstance(record, dict):
            raise typer.BadParameter("Reading file must contain a JSON object.")

        response = self._request("POST", "/readings", json=record)
        key = response.json().get("key")
        if not isinstance(key, str):
            raise typer.BadParameter("Unexpected response payload when pushing reading.")
        return key

    def get_score(self) -> Dict[str, Any]:
        return self._request("GET", "/score").json()

    def get_alerts(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/alerts").json()

    def get_report(self, window: str, day: Optional[str] = None) -> Dict[str, Any]:
        params = {"range": window}
        if day:
            params["day"] = day
        return self._request("GET", "/analytics", params=params).json()

    def get_hourly(self, day: Optional[str] = None) -> Dict[str, Any]:
        params = {"day": day} if day else {}
        return self._request("GET", "/analytics/hourly", params=params).json()

    def export_csv(self, window: str) -> str:
        return self._request("GET", "/analytics/export", params={"range": window}).text

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
