from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the water level service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=30.0)

    def close(self) -> None:
        self._client.close()

    def send_reading(self, device_id: str, distance: float, level_percentage: float) -> Dict[str, Any]:
        try:
            response = self._client.post(
                "/api/water-level",
                json={
                    "deviceId": device_id,
                    "distance": distance,
                    "levelPercentage": level_percentage,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        payload = response.json()
        if not isinstance(payload.get("reading"), dict):
            raise typer.BadParameter("Unexpected response payload when sending reading.")
        return payload["reading"]

    def get_latest(self, device_id: str) -> Optional[Dict[str, Any]]:
        """Return the newest reading, or ``None`` when the device has none."""
        return self._get_optional(f"/api/water-level/latest/{device_id}")

    def get_history(self, device_id: str, limit: int) -> List[Dict[str, Any]]:
        try:
            response = self._client.get(
                f"/api/water-level/history/{device_id}", params={"limit": limit}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def get_latest_alert(self, device_id: str) -> Optional[Dict[str, Any]]:
        return self._get_optional(f"/api/alert/latest/{device_id}")

    def watch_latest(
        self,
        device_id: str,
        interval: float,
        timeout: float,
        on_reading: Callable[[Dict[str, Any]], None],
    ) -> int:
        """Poll ``latest`` until ``timeout``, reporting each new reading once."""
        deadline = time.monotonic() + timeout
        last_timestamp: str | None = None
        seen = 0
        while time.monotonic() <= deadline:
            reading = self.get_latest(device_id)
            if reading is not None and reading.get("timestamp") != last_timestamp:
                last_timestamp = reading.get("timestamp")
                seen += 1
                on_reading(reading)
            time.sleep(interval)
        return seen

    def _get_optional(self, path: str) -> Optional[Dict[str, Any]]:
        try:
            response = self._client.get(path)
            if response.status_code == 404:
                return None
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

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
