"""
identity.py — The installation's anonymous author id.

Routes:
  GET /api/v1/identity — created on first request if it doesn't exist yet
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from relieflink.services.session import MapSession, get_session

router = APIRouter(prefix="/api/v1/identity", tags=["identity"])


class IdentityResponse(BaseModel):
    author_anon_id: str


@router.get("", response_model=IdentityResponse)
async def get_identity(session: MapSession = Depends(get_session)):
    return IdentityResponse(author_anon_id=session.identity.get_or_create())
