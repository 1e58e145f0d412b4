# src/copytrade/venue/hyperliquid.py
from __future__ import annotations

from typing import Any

import requests
import structlog

from copytrade.execution.oms.fills import Fill

log = structlog.get_logger()

MAINNET_URL = "https://api.hyperliquid.xyz"
TESTNET_URL = "https://api.hyperliquid-testnet.xyz"


class VenueError(RuntimeError):
    """
    The info endpoint was unreachable or answered with something unusable.
    """


class HyperliquidInfoClient:
    """
    Read-only client for the Hyperliquid `/info` endpoint.

    Only the fill queries the follower needs are exposed. Order placement
    and request signing are not implemented (paper trading only).
    """

    def __init__(
        self,
        *,
        base_url: str = MAINNET_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()

    @property
    def info_url(self) -> str:
        return f"{self._base_url}/info"

    def user_fills(self, user: str) -> list[Fill]:
        return self._fills({"type": "userFills", "user": user})

    def user_fills_by_time(self, user: str, *, start_ms: int, end_ms: int | None = None) -> list[Fill]:
        payload: dict[str, Any] = {"type": "userFillsByTime", "user": user, "startTime": start_ms}
        if end_ms is not None:
            payload["endTime"] = end_ms
        return self._fills(payload)

    def close(self) -> None:
        self._session.close()

    def _fills(self, payload: dict[str, Any]) -> list[Fill]:
        raw = self._post(payload)
        if not isinstance(raw, list):
            raise VenueError(f"{payload['type']}: expected a list, got {type(raw).__name__}")

        fills: list[Fill] = []
        for obj in raw:
            if not isinstance(obj, dict):
                log.warning("venue.fill_rejected", reason="not_an_object")
                continue
            try:
                fills.append(Fill.from_venue(obj))
            except ValueError as exc:
                log.warning("venue.fill_rejected", reason=str(exc), hash=obj.get("hash"))

        fills.sort(key=lambda f: f.time_ms)
        return fills

    def _post(self, payload: dict[str, Any]) -> Any:
        try:
            resp = self._session.post(self.info_url, json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise VenueError(f"{payload['type']}: request failed: {exc}") from exc

        if resp.status_code != 200:
            raise VenueError(f"{payload['type']}: HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            return resp.json()
        except ValueError as exc:
            raise VenueError(f"{payload['type']}: invalid JSON body") from exc
