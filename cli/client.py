from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the dam level service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        headers = {"X-Actor-Id": config.actor_id} if config.actor_id else {}
        self._client = httpx.Client(
            base_url=config.base_url, timeout=config.timeout, headers=headers
        )

    def close(self) -> None:
        self._client.close()

    def list_readings(self, alerts_only: bool = False) -> List[Dict[str, Any]]:
        path = "/water-levels/alerts" if alerts_only else "/water-levels"
        payload = self._request("GET", path)
        return list(payload.get("data") or [])

    def record_reading(
        self,
        level: float,
        timestamp: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"level": level}
        if timestamp is not None:
            body["timestamp"] = timestamp.isoformat()
        if notes is not None:
            body["notes"] = notes
        return self._request("POST", "/water-levels", json=body)["data"]

    def update_reading(self, reading_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        if not changes:
            raise typer.BadParameter("Provide at least one of --level, --timestamp or --notes.")
        return self._request("PUT", f"/water-levels/{reading_id}", json=changes)["data"]

    def delete_reading(self, reading_id: str) -> None:
        self._request("DELETE", f"/water-levels/{reading_id}")

    def get_threshold(self) -> Dict[str, Any]:
        return self._request("GET", "/settings")["data"]

    def set_threshold(self, value: float) -> Dict[str, Any]:
        return self._request(
            "PUT", "/settings/threshold", json={"critical_threshold": value}
        )["data"]

    def reconcile(self) -> Dict[str, Any]:
        return self._request("POST", "/settings/reconcile")

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            typer.secho(f"Request to {self._config.base_url} failed: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        if isinstance(detail, dict):
            stale = detail.get("stale_ids") or []
            detail = f"{detail.get('message')} Stale records: {', '.join(stale) or 'none'}."
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
