"""
pins.py — Pin mutation routes.

Routes:
  PUT   /api/v1/pins/filters           — merge query filters, re-fetch pins
  POST  /api/v1/pins                   — create (remote, then re-fetch)
  PATCH /api/v1/pins/{id}              — edit (local only, lost on next fetch)
  POST  /api/v1/pins/{id}/dismiss      — remove own pin (author-scoped)
  POST  /api/v1/pins/{id}/report       — report a pin; removed locally on success
  GET   /api/v1/pins/{id}/comments     — comment thread
  POST  /api/v1/pins/{id}/comments     — add a comment

Error mapping:
  ValidationFailure → 422   (nothing was sent upstream)
  MutationFailure   → 404 for an unknown local pin, otherwise 502
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from relieflink.core.config import settings
from relieflink.core.errors import MutationFailure, SourceFetchFailure, ValidationFailure
from relieflink.core.rate_limit import limiter
from relieflink.models.pins import (
    ActionResponse,
    Comment,
    CommentDraft,
    Pin,
    PinDraft,
    PinEdit,
    PinFilters,
)
from relieflink.services.session import MapSession, get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/pins", tags=["pins"])


def _mutation_error(exc: MutationFailure) -> HTTPException:
    if exc.status_code is None and exc.operation == "update":
        return HTTPException(status_code=404, detail="Pin not found")
    return HTTPException(status_code=502, detail=str(exc))


def _validation_error(exc: ValidationFailure) -> HTTPException:
    return HTTPException(status_code=422, detail=exc.errors)


@router.put("/filters", response_model=PinFilters)
async def update_filters(payload: PinFilters, session: MapSession = Depends(get_session)):
    return await session.set_filters(payload)


@router.post("", response_model=Pin, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.create_rate_limit)
async def create_pin(
    request: Request,  # required by slowapi
    payload: PinDraft,
    session: MapSession = Depends(get_session),
):
    """
    Submit a new need/offer.

    Categories are compose-form values ("Food", "Supplies", ...) and are
    mapped to canonical ones; unknown values become "other".
    """
    try:
        return await session.mutations.create(payload)
    except ValidationFailure as exc:
        raise _validation_error(exc)
    except MutationFailure as exc:
        raise _mutation_error(exc)


@router.patch("/{pin_id}", response_model=Pin)
async def edit_pin(pin_id: str, payload: PinEdit, session: MapSession = Depends(get_session)):
    """
    Edit a cached pin in place.

    The relief API has no update endpoint: the edit lives only in this
    session's pins snapshot and disappears on the next pins fetch.
    """
    try:
        return session.mutations.update(pin_id, payload)
    except ValidationFailure as exc:
        raise _validation_error(exc)
    except MutationFailure as exc:
        raise _mutation_error(exc)


@router.post("/{pin_id}/dismiss", response_model=ActionResponse)
async def dismiss_pin(pin_id: str, session: MapSession = Depends(get_session)):
    """Dismiss a pin authored by this installation's anonymous id."""
    try:
        await session.mutations.delete(pin_id)
    except MutationFailure as exc:
        raise _mutation_error(exc)
    return ActionResponse(ok=True)


@router.post("/{pin_id}/report", response_model=ActionResponse)
async def report_pin(pin_id: str, session: MapSession = Depends(get_session)):
    try:
        await session.mutations.report(pin_id)
    except MutationFailure as exc:
        raise _mutation_error(exc)
    return ActionResponse(ok=True)


@router.get("/{pin_id}/comments", response_model=list[Comment])
async def list_comments(pin_id: str, session: MapSession = Depends(get_session)):
    try:
        return await session.mutations.list_comments(pin_id)
    except SourceFetchFailure as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@router.post("/{pin_id}/comments", response_model=Comment, status_code=status.HTTP_201_CREATED)
async def add_comment(pin_id: str, payload: CommentDraft, session: MapSession = Depends(get_session)):
    try:
        return await session.mutations.comment(pin_id, payload)
    except ValidationFailure as exc:
        raise _validation_error(exc)
    except MutationFailure as exc:
        raise _mutation_error(exc)
