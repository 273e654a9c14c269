"""
mutations.py — Create / edit / dismiss / report pins.

  create   remote POST, then a full pins re-fetch so the aggregate picks up
           server-assigned fields. Nothing is inserted optimistically: the
           id isn't known until the server answers.
  update   LOCAL ONLY. The store has no update endpoint, so the edit is
           merged into the cached pin and written straight into the pins
           snapshot. No remote call, no re-fetch, no rollback. The next
           fetch of the pins source discards the edit.
  dismiss  remote POST scoped to the author token; the pin is removed
           locally only after the server confirms.
  report   same removal semantics as dismiss, no author scope.

A failed create/dismiss/report raises MutationFailure and leaves the pins
snapshot exactly as it was. Incomplete drafts raise ValidationFailure
before anything touches the network.
"""

import logging
import math
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from relieflink.core.errors import MutationFailure, SourceFetchFailure, ValidationFailure
from relieflink.core.identity import IdentityStore
from relieflink.models.location import Location
from relieflink.models.pins import (
    MAX_BODY_LENGTH,
    ActionResponse,
    Comment,
    CommentDraft,
    Pin,
    PinCreateRequest,
    PinDraft,
    PinEdit,
)
from relieflink.services.aggregator import pin_to_location
from relieflink.services.relief_client import ReliefApiClient
from relieflink.services.source_fetcher import SourceFetcher

logger = logging.getLogger(__name__)

# ── Category vocabulary ───────────────────────────────────────────────────────
# Compose-form selector value (case-insensitive) → canonical categories.
# "supplies" fans out to two categories; "clothing" shares one of them.
CATEGORY_MAP: dict[str, tuple[str, ...]] = {
    "food":           ("food",),
    "water":          ("water",),
    "shelter":        ("shelter",),
    "transportation": ("transport",),
    "transport":      ("transport",),
    "medical":        ("medical",),
    "supplies":       ("supplies", "clothing"),
    "clothing":       ("clothing",),
    "other":          ("other",),
}
FALLBACK_CATEGORY = "other"


def map_categories(values: Iterable[str]) -> list[str]:
    """
    Map selector values onto canonical categories, order-preserving and
    de-duplicated. Unknown values become "other"; blank values are ignored.
    """
    out: list[str] = []
    for value in values:
        key = (value or "").strip().lower()
        if not key:
            continue
        for category in CATEGORY_MAP.get(key, (FALLBACK_CATEGORY,)):
            if category not in out:
                out.append(category)
    return out


def _check_body(body: Optional[str], errors: list[str]) -> None:
    text = (body or "").strip()
    if not text:
        errors.append("body must not be empty")
    elif len(text) > MAX_BODY_LENGTH:
        errors.append(f"body must be at most {MAX_BODY_LENGTH} characters")


def _check_coordinate(name: str, value: Optional[float], limit: float, errors: list[str]) -> None:
    if value is None:
        errors.append(f"{name} is required")
    elif not math.isfinite(value) or abs(value) > limit:
        errors.append(f"{name} must be within ±{limit:g}")


def validate_draft(draft: PinDraft) -> list[str]:
    """Return a list of problems; empty means the draft can be submitted."""
    errors: list[str] = []
    if not map_categories(draft.categories):
        errors.append("categories must not be empty")
    _check_body(draft.body, errors)
    _check_coordinate("lat", draft.lat, 90, errors)
    _check_coordinate("lng", draft.lng, 180, errors)
    return errors


class MutationCoordinator:
    """
    Executes pin mutations against the remote store and the local pins
    snapshot. `on_update` is called with the canonical Location of every
    locally edited pin so the viewport can follow it.
    """

    def __init__(
        self,
        client: ReliefApiClient,
        pins: SourceFetcher[Pin],
        identity: IdentityStore,
        on_update: Optional[Callable[[Location], None]] = None,
    ) -> None:
        self._client = client
        self._pins = pins
        self._identity = identity
        self._on_update = on_update

    # ── create ───────────────────────────────────────────────────────────────

    async def create(self, draft: PinDraft) -> Pin:
        """
        POST the draft, then re-fetch pins.

        The re-fetch follows the usual issuance-order rule: if a local edit
        or removal lands while it is in flight, that write is newer and the
        re-fetch result is dropped. The created pin is still returned, but
        it only shows up in the aggregate after the next pins fetch.
        """
        errors = validate_draft(draft)
        if errors:
            logger.warning("Rejected pin draft: %s", "; ".join(errors))
            raise ValidationFailure(errors)

        request = PinCreateRequest(
            kind=draft.kind,
            categories=map_categories(draft.categories),
            title=(draft.title or "").strip() or None,
            body=draft.body.strip(),
            lat=draft.lat,
            lng=draft.lng,
            urgency=draft.urgency,
            author_anon_id=self._identity.get_or_create(),
        )
        raw = await self._client.create_pin(request)

        try:
            pin = Pin.model_validate(raw)
        except ValidationError as exc:
            raise MutationFailure("create", f"unexpected response: {exc}") from exc

        logger.info("Created pin %s (%s, %s)", pin.id, pin.kind, ", ".join(pin.categories))
        await self._pins.fetch()
        return pin

    # ── update (local only) ──────────────────────────────────────────────────

    def update(self, pin_id: str, edit: PinEdit) -> Pin:
        cached = list(self._pins.snapshot.items())
        current = next((p for p in cached if p.id == pin_id), None)
        if current is None:
            raise MutationFailure("update", "pin not found in local snapshot", pin_id=pin_id)

        changes = edit.model_dump(exclude_none=True)
        errors: list[str] = []
        if "categories" in changes:
            changes["categories"] = map_categories(changes["categories"])
            if not changes["categories"]:
                errors.append("categories must not be empty")
        if "body" in changes:
            _check_body(changes["body"], errors)
            changes["body"] = changes["body"].strip()
        if errors:
            raise ValidationFailure(errors)

        edited = current.model_copy(update=changes)
        self._pins.replace(edited if p.id == pin_id else p for p in cached)
        logger.info("Edited pin %s locally (not persisted upstream)", pin_id)

        if self._on_update is not None:
            self._on_update(pin_to_location(edited))
        return edited

    # ── dismiss / report ─────────────────────────────────────────────────────

    async def delete(self, pin_id: str, author_token: Optional[str] = None) -> None:
        token = author_token or self._identity.get_or_create()
        raw = await self._client.dismiss_pin(pin_id, token)
        self._confirm("dismiss", pin_id, raw)
        self._remove_local(pin_id)

    async def report(self, pin_id: str) -> None:
        raw = await self._client.report_pin(pin_id)
        self._confirm("report", pin_id, raw)
        self._remove_local(pin_id)

    def _confirm(self, operation: str, pin_id: str, raw) -> None:
        try:
            ok = ActionResponse.model_validate(raw).ok
        except ValidationError as exc:
            raise MutationFailure(operation, f"unexpected response: {exc}", pin_id=pin_id) from exc
        if not ok:
            logger.error("Relief API refused %s of pin %s", operation, pin_id)
            raise MutationFailure(operation, "request refused by server", pin_id=pin_id)

    def _remove_local(self, pin_id: str) -> None:
        cached = list(self._pins.snapshot.items())
        if any(p.id == pin_id for p in cached):
            self._pins.replace(p for p in cached if p.id != pin_id)
            logger.info("Removed pin %s from local snapshot", pin_id)

    # ── comments ─────────────────────────────────────────────────────────────

    async def list_comments(self, pin_id: str) -> list[Comment]:
        raw = await self._client.get_comments(pin_id)
        try:
            return [Comment.model_validate(c) for c in raw or []]
        except ValidationError as exc:
            raise SourceFetchFailure("comments", f"unexpected response: {exc}") from exc

    async def comment(self, pin_id: str, draft: CommentDraft) -> Comment:
        body = (draft.body or "").strip()
        if not body:
            raise ValidationFailure(["body must not be empty"])
        raw = await self._client.add_comment(pin_id, body, self._identity.get_or_create())
        try:
            return Comment.model_validate(raw)
        except ValidationError as exc:
            raise MutationFailure("comment", f"unexpected response: {exc}", pin_id=pin_id) from exc
