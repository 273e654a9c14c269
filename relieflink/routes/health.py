"""
Health check endpoint.

Used by:
  - Docker HEALTHCHECK instruction
  - The map front-end to show API connectivity

Returns liveness plus a diagnostic round-trip to the relief API (/healthz,
then /pins) so callers can tell "gateway down" from "gateway up but relief
API unreachable".
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from relieflink.core.config import settings
from relieflink.services.session import MapSession, get_session

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str  # Always "ok" if the gateway process is alive
    version: str
    upstream: str  # "connected" | "disconnected"
    upstream_status: Optional[str] = None
    pin_count: Optional[int] = None
    error: Optional[str] = None
    environment: str


@router.get("", response_model=HealthResponse, summary="Gateway health check")
async def health_check(session: MapSession = Depends(get_session)) -> HealthResponse:
    """
    Always HTTP 200 while the process is alive, even when the relief API is
    unreachable; the `upstream` field carries that.
    """
    diagnostics = await session.diagnose()
    return HealthResponse(
        status="ok",
        version="0.1.0",
        environment=settings.environment,
        **diagnostics,
    )
