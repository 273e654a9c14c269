"""
pins.py — Pydantic schemas for user-submitted pins.

Pin               — a need/offer record as returned by the remote store
PinDraft          — what the compose form hands to MutationCoordinator.create
PinCreateRequest  — the wire body for POST /pins (draft + author token)
PinEdit           — fields a local edit may replace
Comment / CommentDraft — per-pin discussion thread
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PinKind = Literal["need", "offer"]
Urgency = Literal[1, 2, 3]

# Compose form limit on the message body
MAX_BODY_LENGTH = 200


class Pin(BaseModel):
    """A need/offer pin owned by the remote store."""

    model_config = ConfigDict(extra="ignore")

    id: str
    kind: PinKind
    categories: list[str] = Field(..., min_length=1)
    title: Optional[str] = None
    body: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    urgency: Urgency = 2
    author_anon_id: str = ""
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    distance_mi: Optional[float] = None   # only when the query had a center


class PinDraft(BaseModel):
    """
    Payload for creating a pin.

    Deliberately lax: completeness is checked by MutationCoordinator so a
    missing field becomes a ValidationFailure instead of a parse error.
    `categories` holds compose-form selector values (e.g. "Food"); they are
    mapped to canonical strings at submit time.
    """

    kind: PinKind = "need"
    categories: list[str] = Field(default_factory=list)
    title: Optional[str] = None
    body: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    urgency: Urgency = 2


class PinCreateRequest(BaseModel):
    """Wire body for POST /pins."""

    kind: PinKind
    categories: list[str]
    title: Optional[str] = None
    body: str
    lat: float
    lng: float
    urgency: Urgency
    author_anon_id: str


class PinEdit(BaseModel):
    """Partial edit. Only provided (non-None) fields replace the cached pin's."""

    title: Optional[str] = None
    body: Optional[str] = None
    categories: Optional[list[str]] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    urgency: Optional[Urgency] = None


class PinFilters(BaseModel):
    """Query filters for GET /pins. Unset keys keep their current value on merge."""

    kinds: Optional[list[PinKind]] = None
    categories: Optional[list[str]] = None
    center: Optional[tuple[float, float]] = None   # (lat, lon)
    radius: Optional[float] = Field(default=None, gt=0)   # miles


class ActionResponse(BaseModel):
    """Response of POST /pins/{id}/dismiss and /report."""

    ok: bool


class Comment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    pin_id: str
    body: str
    created_at: Optional[datetime] = None


class CommentDraft(BaseModel):
    body: str = ""
