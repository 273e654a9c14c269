"""
overlay.py — Hazard-zone overlay schemas.

Independent of the location aggregate: overlay features are drawn as
polygons with a popup label built from their properties, nothing more.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class OverlayFeature(BaseModel):
    layer: str
    geometry: Optional[dict[str, Any]] = None
    properties: dict[str, Any] = Field(default_factory=dict)
    label: str = ""     # "key: value" lines, properties surfaced verbatim


class OverlayLayer(BaseModel):
    name: str
    features: list[OverlayFeature] = Field(default_factory=list)


class OverlayState(BaseModel):
    """Response shape for GET/PUT /api/v1/overlay."""

    enabled: bool
    layers: list[OverlayLayer] = Field(default_factory=list)
    failures: dict[str, str] = Field(default_factory=dict)   # layer name → reason
    feature_count: int = 0
    loaded_at: Optional[str] = None


class OverlayToggleRequest(BaseModel):
    enabled: bool
