"""
reference.py — Read-only third-party relief records.

Shelter / FoodSite arrive as plain JSON arrays. Municipal 311 reports arrive
as a GeoJSON FeatureCollection, so coordinates are [lng, lat] and the
aggregator swaps them into (lat, lon).
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Shelter(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    type: str = "shelter"
    lat: float
    lng: float
    capacity: Optional[str] = None
    notes: Optional[str] = None
    last_updated: Optional[str] = None


class FoodSite(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    kind: str = "free_food"     # "free_food" | "drop_off"
    lat: float
    lng: float
    status: Optional[str] = None
    needs: Optional[str] = None
    source: str = ""
    last_updated: Optional[str] = None


class ReportProperties(BaseModel):
    model_config = ConfigDict(extra="ignore")

    category: str = "Uncategorized"
    updated: Optional[str] = None
    raw: Optional[Any] = None


class PointGeometry(BaseModel):
    type: str
    coordinates: list[float] = Field(..., min_length=2)   # [lng, lat]


class ExternalReport(BaseModel):
    """A single 311 feature."""

    model_config = ConfigDict(extra="ignore")

    type: str = "Feature"
    properties: ReportProperties = Field(default_factory=ReportProperties)
    geometry: Optional[PointGeometry] = None
