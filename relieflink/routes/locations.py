"""
locations.py — Aggregated location routes.

Routes:
  GET  /api/v1/locations          — canonical locations + per-source status + focus
  POST /api/v1/locations/refresh  — re-fetch every source, or one via ?source=

The aggregate is always recomputed from the current source snapshots, so
these handlers only read; the refresh route is the one way callers ask for
new upstream data (there is no polling timer).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from relieflink.models.location import LocationsResponse
from relieflink.services.session import MapSession, get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/locations", tags=["locations"])


@router.get("", response_model=LocationsResponse)
async def get_locations(session: MapSession = Depends(get_session)):
    """
    Return the render-ready location list.

    Sources that are still pending or failed contribute nothing; their
    state is visible in `sources[*].status` / `error`.
    """
    return session.snapshot()


@router.post("/refresh", response_model=LocationsResponse)
async def refresh_locations(
    source: Optional[str] = Query(default=None, description="pins | 311 | shelters | food (omit for all)"),
    session: MapSession = Depends(get_session),
):
    if source is None:
        await session.refresh_all()
    else:
        try:
            await session.refresh(source)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown source '{source}'")
    return session.snapshot()
