"""
aggregator.py — Multi-source location aggregation.

Turns the four source snapshots into one ordered list of canonical
Locations:

    pins (source order) → 311 reports → shelters → food sites

`aggregate()` is a pure function of the snapshots: no I/O, no hidden
state, cheap enough to run on every snapshot change. Pending and failed
snapshots contribute nothing. Identical inputs always produce identical
output (same order, same ids).

LocationAggregator wraps it in the observer model: it subscribes to each
SourceFetcher and recomputes the whole list (never patches it) whenever
any of them publishes a new snapshot.

Canonical ids
─────────────
  pin       → the server-assigned pin id
  shelter   → "shelter:<native id>"  or "shelter:<lat>,<lon>:<name>"
  food      → "food:<native id>"     or "food:<lat>,<lon>:<name>"
  311       → "311:<lat>,<lon>:<category>"

Coordinate-derived ids are only stable while a site's coordinates don't
change between fetches. If two records in one aggregate still collide, the
later ones get the lowest "#<n>" suffix no other record in the batch uses,
so ids stay unique even against pin ids and native ids that look derived.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from relieflink.models.location import Location, Snapshot
from relieflink.models.pins import Pin
from relieflink.models.reference import ExternalReport, FoodSite, Shelter
from relieflink.services.source_fetcher import SourceFetcher

logger = logging.getLogger(__name__)

# Source names, in output order
PINS, REPORTS, SHELTERS, FOOD = "pins", "311", "shelters", "food"
SOURCE_ORDER = (PINS, REPORTS, SHELTERS, FOOD)

# Urgency for sources without a native urgency concept
_DEFAULT_URGENCY = {REPORTS: 2, SHELTERS: 1, FOOD: 1}

_COORD_PRECISION = 5


def _coord_key(lat: float, lon: float) -> str:
    return f"{lat:.{_COORD_PRECISION}f},{lon:.{_COORD_PRECISION}f}"


def _join(*parts: Optional[str]) -> str:
    return " · ".join(p.strip() for p in parts if p and p.strip())


# ── Normalizers (one per source) ──────────────────────────────────────────────

def pin_to_location(pin: Pin) -> Location:
    return Location(
        id=pin.id,
        name=pin.title or f"{pin.kind} - {', '.join(pin.categories)}",
        description=pin.body,
        lat=pin.lat,
        lon=pin.lng,
        type=pin.kind,
        urgency=pin.urgency,
    )


def report_to_location(report: ExternalReport) -> Location:
    # GeoJSON order is [lng, lat]
    lon, lat = report.geometry.coordinates[0], report.geometry.coordinates[1]
    category = report.properties.category
    updated = report.properties.updated
    return Location(
        id=f"{REPORTS}:{_coord_key(lat, lon)}:{category}",
        name=category,
        description=f"Updated {updated}" if updated else "",
        lat=lat,
        lon=lon,
        type=REPORTS,
        urgency=_DEFAULT_URGENCY[REPORTS],
    )


def shelter_to_location(shelter: Shelter) -> Location:
    key = shelter.id or f"{_coord_key(shelter.lat, shelter.lng)}:{shelter.name}"
    capacity = f"Capacity: {shelter.capacity}" if shelter.capacity else None
    return Location(
        id=f"shelter:{key}",
        name=shelter.name,
        description=_join(shelter.type, capacity, shelter.notes),
        lat=shelter.lat,
        lon=shelter.lng,
        type="shelter",
        urgency=_DEFAULT_URGENCY[SHELTERS],
    )


def food_to_location(site: FoodSite) -> Location:
    key = site.id or f"{_coord_key(site.lat, site.lng)}:{site.name}"
    needs = f"Needs: {site.needs}" if site.needs else None
    return Location(
        id=f"{FOOD}:{key}",
        name=site.name,
        description=_join(site.kind.replace("_", " "), site.status, needs),
        lat=site.lat,
        lon=site.lng,
        type=FOOD,
        urgency=_DEFAULT_URGENCY[FOOD],
    )


# ── 311 parsing ───────────────────────────────────────────────────────────────

def parse_reports(raw: Any) -> list[ExternalReport]:
    """
    Validate a 311 FeatureCollection into point reports.

    Features without usable Point geometry are dropped here, so every
    record in a ready snapshot maps to exactly one Location.
    """
    if not isinstance(raw, dict) or raw.get("type") != "FeatureCollection":
        raise ValueError("311: body must be a GeoJSON FeatureCollection")

    reports: list[ExternalReport] = []
    for i, feature in enumerate(raw.get("features") or []):
        try:
            report = ExternalReport.model_validate(feature)
        except ValidationError as exc:
            logger.warning("Skipping invalid 311 feature #%d: %s", i, exc)
            continue
        if report.geometry is None or report.geometry.type != "Point":
            logger.debug("Skipping non-point 311 feature #%d", i)
            continue
        reports.append(report)
    return reports


# ── Pure aggregation ──────────────────────────────────────────────────────────

def _unique_ids(locations: list[Location]) -> list[Location]:
    """
    Keep the first occurrence of every id; rename later duplicates to the
    lowest "<id>#<n>" that no record in the batch already uses, whether as
    its own id or as an earlier suffix.
    """
    natural = {loc.id for loc in locations}
    taken: set[str] = set()
    out: list[Location] = []
    for loc in locations:
        if loc.id not in taken:
            taken.add(loc.id)
            out.append(loc)
            continue
        n = 1
        while f"{loc.id}#{n}" in natural or f"{loc.id}#{n}" in taken:
            n += 1
        candidate = f"{loc.id}#{n}"
        taken.add(candidate)
        out.append(loc.model_copy(update={"id": candidate}))
    return out


def aggregate(
    pins: Snapshot[Pin],
    reports: Snapshot[ExternalReport],
    shelters: Snapshot[Shelter],
    food: Snapshot[FoodSite],
) -> list[Location]:
    """Build the canonical, ordered location list from four snapshots."""
    locations: list[Location] = []
    locations.extend(pin_to_location(p) for p in pins.items())
    locations.extend(report_to_location(r) for r in reports.items())
    locations.extend(shelter_to_location(s) for s in shelters.items())
    locations.extend(food_to_location(f) for f in food.items())
    return _unique_ids(locations)


# ── Observer ──────────────────────────────────────────────────────────────────

AggregateListener = Callable[[list[Location]], None]


class LocationAggregator:
    """
    Recomputes the aggregate synchronously whenever a source publishes.

    Only reads the fetchers' snapshots; never writes to them.
    """

    def __init__(
        self,
        pins: SourceFetcher[Pin],
        reports: SourceFetcher[ExternalReport],
        shelters: SourceFetcher[Shelter],
        food: SourceFetcher[FoodSite],
    ) -> None:
        self.sources: dict[str, SourceFetcher] = {
            PINS: pins,
            REPORTS: reports,
            SHELTERS: shelters,
            FOOD: food,
        }
        self._listeners: list[AggregateListener] = []
        self._locations: list[Location] = []
        self._unsubscribers = [f.subscribe(self._on_snapshot) for f in self.sources.values()]
        self.recompute()

    @property
    def locations(self) -> list[Location]:
        return list(self._locations)

    def subscribe(self, listener: AggregateListener) -> None:
        self._listeners.append(listener)

    def recompute(self) -> list[Location]:
        self._locations = aggregate(*(self.sources[name].snapshot for name in SOURCE_ORDER))
        for listener in list(self._listeners):
            listener(self.locations)
        return self.locations

    def find(self, location_id: str) -> Optional[Location]:
        return next((loc for loc in self._locations if loc.id == location_id), None)

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _on_snapshot(self, source: str, _snapshot: Snapshot) -> None:
        logger.debug("Snapshot changed for %s, recomputing aggregate", source)
        self.recompute()

