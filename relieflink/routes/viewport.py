"""
viewport.py — Map focus routes.

Routes:
  GET /api/v1/viewport        — current focus, map center and recenter flag
  PUT /api/v1/viewport/focus  — user picked a location (e.g. to edit it)
"""

from fastapi import APIRouter, Depends, HTTPException

from relieflink.models.location import FocusRequest, ViewportState
from relieflink.services.session import MapSession, get_session

router = APIRouter(prefix="/api/v1/viewport", tags=["viewport"])


@router.get("", response_model=ViewportState)
async def get_viewport(session: MapSession = Depends(get_session)):
    return session.viewport.state()


@router.put("/focus", response_model=ViewportState)
async def set_focus(payload: FocusRequest, session: MapSession = Depends(get_session)):
    """Focus on a location from the current aggregate. `recenter` says whether the map moves."""
    if session.select(payload.location_id) is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return session.viewport.state()
