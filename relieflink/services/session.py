"""
session.py — Wiring for one map session.

Builds the object graph explicitly instead of sharing a global store:

    ReliefApiClient ──▶ SourceFetcher × 4 ──▶ LocationAggregator ──▶ ViewportController
                              ▲
    MutationCoordinator ──────┘ (pins snapshot + re-fetch)

    OverlayLoader (stands alone)

Each component gets references to exactly the state it reads and exposes
callbacks for the state it produces. The FastAPI app keeps one MapSession
on app.state; tests build their own with fake transports.
"""

import asyncio
import logging
from typing import Any, Optional

from fastapi import Request

from relieflink.core.config import settings
from relieflink.core.errors import SourceFetchFailure
from relieflink.core.identity import IdentityStore
from relieflink.models.location import Location, LocationsResponse
from relieflink.models.pins import Pin, PinFilters
from relieflink.models.reference import ExternalReport, FoodSite, Shelter
from relieflink.services.aggregator import (
    FOOD,
    PINS,
    REPORTS,
    SHELTERS,
    LocationAggregator,
    parse_reports,
)
from relieflink.services.mutations import MutationCoordinator
from relieflink.services.overlay_loader import OverlayLoader
from relieflink.services.relief_client import ReliefApiClient
from relieflink.services.source_fetcher import SourceFetcher, parse_records
from relieflink.services.viewport import ViewportController

logger = logging.getLogger(__name__)


class MapSession:
    def __init__(
        self,
        client: ReliefApiClient,
        identity: IdentityStore,
        overlay: Optional[OverlayLoader] = None,
        viewport: Optional[ViewportController] = None,
        filters: Optional[PinFilters] = None,
    ) -> None:
        self.client = client
        self.identity = identity
        self.filters = filters or PinFilters(
            kinds=settings.pin_kinds or None,
            radius=settings.pin_radius_mi,
        )

        self.pins: SourceFetcher[Pin] = SourceFetcher(
            PINS, lambda: client.get_pins(self.filters), parse_records(Pin, PINS)
        )
        self.reports: SourceFetcher[ExternalReport] = SourceFetcher(
            REPORTS, client.get_311, parse_reports
        )
        self.shelters: SourceFetcher[Shelter] = SourceFetcher(
            SHELTERS, client.get_shelters, parse_records(Shelter, SHELTERS)
        )
        self.food: SourceFetcher[FoodSite] = SourceFetcher(
            FOOD, client.get_food_sites, parse_records(FoodSite, FOOD)
        )

        self.aggregator = LocationAggregator(self.pins, self.reports, self.shelters, self.food)
        self.viewport = viewport or ViewportController()
        self.aggregator.subscribe(self.viewport.on_aggregate)
        self.viewport.on_aggregate(self.aggregator.locations)

        self.mutations = MutationCoordinator(
            client, self.pins, identity, on_update=self.viewport.on_location_changed
        )
        self.overlay = overlay or OverlayLoader()

    # ── Sources ──────────────────────────────────────────────────────────────

    @property
    def sources(self) -> dict[str, SourceFetcher]:
        return self.aggregator.sources

    async def refresh_all(self) -> None:
        """Fetch every source concurrently. One failing source never blocks the rest."""
        await asyncio.gather(*(fetcher.fetch() for fetcher in self.sources.values()))

    async def refresh(self, name: str) -> None:
        """Re-fetch one source by name. Raises KeyError for unknown names."""
        await self.sources[name].fetch()

    async def set_filters(self, update: PinFilters) -> PinFilters:
        """Merge new pin filters over the current ones and re-fetch pins."""
        changes = update.model_dump(exclude_unset=True)
        self.filters = self.filters.model_copy(update=changes)
        logger.info("Pin filters now %s", self.filters.model_dump(exclude_none=True))
        await self.pins.fetch()
        return self.filters

    # ── Views ────────────────────────────────────────────────────────────────

    def snapshot(self) -> LocationsResponse:
        locations = self.aggregator.locations
        return LocationsResponse(
            locations=locations,
            sources=[fetcher.status() for fetcher in self.sources.values()],
            focus=self.viewport.focus,
            total=len(locations),
        )

    def select(self, location_id: str) -> Optional[Location]:
        """Focus the viewport on a location in the current aggregate."""
        location = self.aggregator.find(location_id)
        if location is not None:
            self.viewport.select(location)
        return location

    async def diagnose(self) -> dict[str, Any]:
        """
        Connectivity check against the relief API: /healthz, then /pins.
        Never raises; a failure is reported as upstream="disconnected".
        """
        try:
            health = await self.client.health_check()
            pins = await self.client.get_pins()
        except SourceFetchFailure as exc:
            logger.warning("Relief API diagnostics failed: %s", exc)
            return {"upstream": "disconnected", "upstream_status": None, "pin_count": None, "error": str(exc)}
        return {
            "upstream": "connected",
            "upstream_status": str(health.get("status", "unknown")) if isinstance(health, dict) else "unknown",
            "pin_count": len(pins) if isinstance(pins, list) else None,
            "error": None,
        }

    def close(self) -> None:
        self.aggregator.close()


def get_session(request: Request) -> MapSession:
    """
    FastAPI dependency — the MapSession created in the app lifespan.

    Tests replace it through app.dependency_overrides[get_session].
    """
    return request.app.state.session
