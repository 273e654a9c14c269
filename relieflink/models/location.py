"""
location.py — Canonical location schema, source snapshots and API shapes.

Location  — the normalized, source-agnostic point every marker is drawn from.
            Always derived from source snapshots; never stored on its own.
Snapshot  — the latest complete result of one source fetch. Replaced
            wholesale on every fetch; never patched field by field except
            by MutationCoordinator on the pins source.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

SnapshotStatus = Literal["pending", "ready", "failed"]


class Location(BaseModel):
    """A render-ready map point."""

    id: str
    name: str
    description: str = ""
    lat: float
    lon: float
    type: str            # pin kind ("need" | "offer") or "311" | "shelter" | "food"
    urgency: int = 1
    more_info_url: Optional[str] = None
    main_img: Optional[str] = None
    image_urls: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    """
    One of pending / ready(data, fetched_at) / failed(reason).

    `generation` is the request sequence number that produced this snapshot.
    """

    status: SnapshotStatus
    data: tuple[T, ...] = ()
    fetched_at: Optional[datetime] = None
    error: Optional[str] = None
    generation: int = 0

    @classmethod
    def pending(cls, generation: int = 0) -> "Snapshot[T]":
        return cls(status="pending", generation=generation)

    @classmethod
    def ready(cls, data, generation: int = 0, fetched_at: Optional[datetime] = None) -> "Snapshot[T]":
        return cls(
            status="ready",
            data=tuple(data),
            fetched_at=fetched_at or datetime.now(timezone.utc),
            generation=generation,
        )

    @classmethod
    def failed(cls, reason: str, generation: int = 0) -> "Snapshot[T]":
        return cls(status="failed", error=reason, generation=generation)

    @property
    def is_ready(self) -> bool:
        return self.status == "ready"

    def items(self) -> tuple[T, ...]:
        """Data when ready, otherwise nothing."""
        return self.data if self.is_ready else ()


# ── API response shapes ───────────────────────────────────────────────────────

class SourceStatus(BaseModel):
    """Loading / error flags for one source, as the map chrome shows them."""

    name: str
    status: SnapshotStatus
    loading: bool
    error: Optional[str] = None
    count: int = 0
    fetched_at: Optional[datetime] = None


class ViewportState(BaseModel):
    focus: Optional[Location] = None
    center_lat: float
    center_lon: float
    zoom: int
    recenter: bool = False     # True when the last focus change moved the map


class LocationsResponse(BaseModel):
    """Snapshot returned by GET /api/v1/locations."""

    locations: list[Location]
    sources: list[SourceStatus]
    focus: Optional[Location] = None
    total: int


class FocusRequest(BaseModel):
    location_id: str = Field(..., min_length=1)
