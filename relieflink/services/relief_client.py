"""
ReliefApiClient — async wrapper around the remote pin store.

Endpoints (all relative to settings.relief_api_base unless noted):
  GET  /pins?kinds=&categories=&center=lat,lon&radius=   → [Pin]
  POST /pins                                             → Pin
  POST /pins/{id}/dismiss?author_anon_id=                → {ok}
  POST /pins/{id}/report                                 → {ok}
  GET  /pins/{id}/comments, POST /pins/{id}/comments
  GET  /shelters, /food                                  → [ReferenceSite]
  GET  /311                                              → FeatureCollection
  GET  /healthz  (host root)                             → {status}

Every method here raises on failure: reads raise SourceFetchFailure,
writes raise MutationFailure. The callers
(SourceFetcher / MutationCoordinator) own the degradation policy.
"""

import logging
from typing import Any, Optional

import httpx

from relieflink.core.config import settings
from relieflink.core.errors import MutationFailure, SourceFetchFailure
from relieflink.models.pins import PinCreateRequest, PinFilters

logger = logging.getLogger(__name__)


class ReliefApiClient:
    """
    Thin async client for the relief API.

    `transport` lets tests plug in an httpx.MockTransport; production code
    leaves it as None and talks to the network.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        root_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.relief_api_base).rstrip("/")
        self.root_url = (root_url or settings.relief_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Content-Type": "application/json"},
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        async with self._client() as client:
            response = await client.request(method, url, params=params, json=json)
            response.raise_for_status()
            return response.json()

    async def _read(self, source: str, path: str, params: Optional[dict[str, str]] = None) -> Any:
        try:
            return await self._send("GET", f"{self.base_url}{path}", params=params)
        except httpx.HTTPStatusError as exc:
            raise SourceFetchFailure(
                source,
                f"API request failed: {exc.response.status_code} {exc.response.reason_phrase}",
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceFetchFailure(source, f"network error: {exc}") from exc
        except ValueError as exc:
            raise SourceFetchFailure(source, f"invalid JSON: {exc}") from exc

    async def _write(
        self,
        operation: str,
        path: str,
        *,
        pin_id: Optional[str] = None,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        try:
            return await self._send("POST", f"{self.base_url}{path}", params=params, json=json)
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Relief API rejected %s: %s — %s",
                operation,
                exc.response.status_code,
                exc.response.text[:200],
            )
            raise MutationFailure(
                operation,
                f"API request failed: {exc.response.status_code} {exc.response.reason_phrase}",
                pin_id=pin_id,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Relief API %s request failed: %s", operation, exc)
            raise MutationFailure(operation, f"network error: {exc}", pin_id=pin_id) from exc
        except ValueError as exc:
            raise MutationFailure(operation, f"invalid JSON: {exc}", pin_id=pin_id) from exc

    # ── Pins ─────────────────────────────────────────────────────────────────

    async def get_pins(self, filters: Optional[PinFilters] = None) -> list[dict[str, Any]]:
        params: dict[str, str] = {}
        if filters is not None:
            if filters.kinds:
                params["kinds"] = ",".join(filters.kinds)
            if filters.categories:
                params["categories"] = ",".join(filters.categories)
            if filters.center is not None:
                params["center"] = f"{filters.center[0]},{filters.center[1]}"
            if filters.radius:
                params["radius"] = str(filters.radius)
        return await self._read("pins", "/pins", params=params or None)

    async def create_pin(self, request: PinCreateRequest) -> dict[str, Any]:
        return await self._write("create", "/pins", json=request.model_dump(mode="json"))

    async def dismiss_pin(self, pin_id: str, author_anon_id: str) -> dict[str, Any]:
        return await self._write(
            "dismiss",
            f"/pins/{pin_id}/dismiss",
            pin_id=pin_id,
            params={"author_anon_id": author_anon_id},
        )

    async def report_pin(self, pin_id: str) -> dict[str, Any]:
        return await self._write("report", f"/pins/{pin_id}/report", pin_id=pin_id)

    async def get_comments(self, pin_id: str) -> list[dict[str, Any]]:
        return await self._read("comments", f"/pins/{pin_id}/comments")

    async def add_comment(self, pin_id: str, body: str, author_anon_id: str) -> dict[str, Any]:
        return await self._write(
            "comment",
            f"/pins/{pin_id}/comments",
            pin_id=pin_id,
            json={"body": body, "author_anon_id": author_anon_id},
        )

    # ── Reference data + feeds ───────────────────────────────────────────────

    async def get_shelters(self) -> list[dict[str, Any]]:
        return await self._read("shelters", "/shelters")

    async def get_food_sites(self) -> list[dict[str, Any]]:
        return await self._read("food", "/food")

    async def get_311(self) -> dict[str, Any]:
        return await self._read("311", "/311")

    # ── Diagnostics ──────────────────────────────────────────────────────────

    async def health_check(self) -> dict[str, Any]:
        try:
            return await self._send("GET", f"{self.root_url}/healthz")
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceFetchFailure("healthz", str(exc)) from exc
