"""
overlay.py — Hazard overlay toggle.

Routes:
  GET /api/v1/overlay  — current overlay state and features
  PUT /api/v1/overlay  — {"enabled": true|false}

Turning the overlay on returns 200 as long as at least one layer loaded
(per-layer failures are listed in `failures`). If none loaded, the overlay
stays off and the route answers 502.
"""

from fastapi import APIRouter, Depends, HTTPException

from relieflink.core.errors import OverlayLoadFailure
from relieflink.models.overlay import OverlayState, OverlayToggleRequest
from relieflink.services.session import MapSession, get_session

router = APIRouter(prefix="/api/v1/overlay", tags=["overlay"])


@router.get("", response_model=OverlayState)
async def get_overlay(session: MapSession = Depends(get_session)):
    return session.overlay.state()


@router.put("", response_model=OverlayState)
async def toggle_overlay(payload: OverlayToggleRequest, session: MapSession = Depends(get_session)):
    try:
        return await session.overlay.toggle(payload.enabled)
    except OverlayLoadFailure as exc:
        raise HTTPException(
            status_code=502,
            detail={"message": str(exc), "failures": exc.failures},
        )
