"""
pytest configuration and shared fixtures for the ReliefLink tests.

Key concern: tests must not require a live relief API or GIS service.
We achieve this by:
  1. Running an in-memory FakeReliefApi behind httpx.MockTransport, so the
     real ReliefApiClient code path (URLs, params, status handling) runs.
  2. Writing the anonymous author id into pytest's tmp_path.
  3. Overriding the get_session dependency so the FastAPI app uses the
     test's MapSession instead of the one built in the lifespan.
"""

import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("ENVIRONMENT", "test")

from relieflink.core.identity import IdentityStore  # noqa: E402
from relieflink.services.overlay_loader import OverlayLoader  # noqa: E402
from relieflink.services.relief_client import ReliefApiClient  # noqa: E402
from relieflink.services.session import MapSession  # noqa: E402

API_BASE = "http://relief.test/api"
API_ROOT = "http://relief.test"


class FakeReliefApi:
    """
    Stateful stand-in for the relief API.

    `fail` holds "METHOD /path" keys that should answer 500.
    `requests` records every "METHOD /path" seen, in order.
    """

    def __init__(self):
        self.pins: list[dict[str, Any]] = []
        self.shelters: list[dict[str, Any]] = []
        self.food: list[dict[str, Any]] = []
        self.reports: list[dict[str, Any]] = []
        self.comments: dict[str, list[dict[str, Any]]] = {}
        self.fail: set[str] = set()
        self.requests: list[str] = []
        self.last_params: dict[str, dict[str, str]] = {}
        self._next_id = 100

    # ── transport plumbing ───────────────────────────────────────────────────

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> ReliefApiClient:
        return ReliefApiClient(base_url=API_BASE, root_url=API_ROOT, timeout=5, transport=self.transport)

    def handle(self, request: httpx.Request) -> httpx.Response:
        key = f"{request.method} {request.url.path}"
        self.requests.append(key)
        self.last_params[key] = dict(request.url.params)
        if key in self.fail:
            return httpx.Response(500, json={"detail": "boom"})

        parts = request.url.path.strip("/").split("/")
        if parts == ["healthz"]:
            return httpx.Response(200, json={"status": "healthy"})
        if parts[:1] != ["api"]:
            return httpx.Response(404, json={"detail": "Not Found"})
        parts = parts[1:]

        if parts == ["shelters"]:
            return httpx.Response(200, json=self.shelters)
        if parts == ["food"]:
            return httpx.Response(200, json=self.food)
        if parts == ["311"]:
            return httpx.Response(200, json={"type": "FeatureCollection", "features": self.reports})
        if parts == ["pins"]:
            if request.method == "GET":
                return self._list_pins(request)
            return self._create_pin(json.loads(request.content))
        if len(parts) == 3 and parts[0] == "pins":
            return self._pin_action(request, parts[1], parts[2])
        return httpx.Response(404, json={"detail": "Not Found"})

    # ── endpoints ────────────────────────────────────────────────────────────

    def _list_pins(self, request: httpx.Request) -> httpx.Response:
        pins = self.pins
        kinds = request.url.params.get("kinds")
        if kinds:
            wanted = set(kinds.split(","))
            pins = [p for p in pins if p["kind"] in wanted]
        return httpx.Response(200, json=pins)

    def _create_pin(self, body: dict[str, Any]) -> httpx.Response:
        self._next_id += 1
        now = datetime(2025, 8, 28, 12, 0, tzinfo=timezone.utc)
        pin = {
            **body,
            "id": f"p{self._next_id}",
            "created_at": now.isoformat(),
            "expires_at": (now + timedelta(days=7)).isoformat(),
        }
        self.pins.append(pin)
        return httpx.Response(201, json=pin)

    def _pin_action(self, request: httpx.Request, pin_id: str, action: str) -> httpx.Response:
        pin = next((p for p in self.pins if p["id"] == pin_id), None)
        if action == "comments":
            if request.method == "GET":
                return httpx.Response(200, json=self.comments.get(pin_id, []))
            body = json.loads(request.content)
            comment = {
                "id": f"c{len(self.comments.get(pin_id, [])) + 1}",
                "pin_id": pin_id,
                "body": body["body"],
                "created_at": "2025-08-28T13:00:00Z",
            }
            self.comments.setdefault(pin_id, []).append(comment)
            return httpx.Response(201, json=comment)
        if pin is None:
            return httpx.Response(404, json={"detail": "Pin not found"})
        if action == "dismiss":
            if request.url.params.get("author_anon_id") != pin["author_anon_id"]:
                return httpx.Response(403, json={"detail": "Not the author"})
            self.pins.remove(pin)
            return httpx.Response(200, json={"ok": True})
        if action == "report":
            self.pins.remove(pin)
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(404, json={"detail": "Not Found"})


@pytest.fixture()
def fake_api() -> FakeReliefApi:
    return FakeReliefApi()


@pytest.fixture()
def identity(tmp_path) -> IdentityStore:
    return IdentityStore(tmp_path / "author_id")


@pytest.fixture()
def session(fake_api, identity) -> MapSession:
    """MapSession wired to the fake API. The overlay has no layers configured."""
    s = MapSession(fake_api.client(), identity, overlay=OverlayLoader(layers={}))
    yield s
    s.close()


@pytest.fixture()
async def api_client(session):
    """
    HTTPX async test client wired to the FastAPI app with the test session.

    The limiter's in-memory storage is reset so create calls from earlier
    tests don't count against this one.
    """
    from relieflink.core.rate_limit import limiter
    from relieflink.main import app
    from relieflink.services.session import get_session

    try:
        limiter._limiter.storage.reset()
    except Exception:
        pass  # Some storage backends don't support reset — safe to ignore.

    app.dependency_overrides[get_session] = lambda: session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
