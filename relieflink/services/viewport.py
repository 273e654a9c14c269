"""
viewport.py — Focus tracking for the map view.

Two states:

  Unfocused ──(aggregate first becomes non-empty)──▶ Focused(aggregate[0])
  Focused   ──(user selection / mutation of the focused pin)──▶ Focused(new)

There is no way back to Unfocused. Later aggregate changes never move the
focus on their own, even if the aggregate empties out. The map stays
where the user was looking.

Recentering is requested only when the new focus sits at a different
(lat, lon) than the current map center; replacing the focus with an
equivalent coordinate pair does not trigger another fly-to.
"""

import logging
from typing import Callable, Optional

from relieflink.core.config import settings
from relieflink.models.location import Location, ViewportState

logger = logging.getLogger(__name__)

RecenterListener = Callable[[float, float, int], None]


class ViewportController:
    def __init__(
        self,
        center_lat: Optional[float] = None,
        center_lon: Optional[float] = None,
        zoom: Optional[int] = None,
    ) -> None:
        self.center_lat = center_lat if center_lat is not None else settings.default_center_lat
        self.center_lon = center_lon if center_lon is not None else settings.default_center_lon
        self.zoom = zoom if zoom is not None else settings.default_zoom
        self._focus: Optional[Location] = None
        self._last_recenter = False
        self._listeners: list[RecenterListener] = []

    @property
    def focus(self) -> Optional[Location]:
        return self._focus

    @property
    def focused(self) -> bool:
        return self._focus is not None

    def on_recenter(self, listener: RecenterListener) -> None:
        """Register the map boundary's fly-to callback."""
        self._listeners.append(listener)

    # ── Transitions ──────────────────────────────────────────────────────────

    def on_aggregate(self, locations: list[Location]) -> None:
        """Aggregate listener: auto-focus exactly once, on first non-empty list."""
        if self._focus is None and locations:
            logger.info("Initial focus: %s", locations[0].id)
            self._set_focus(locations[0])

    def select(self, location: Location) -> bool:
        """Explicit user selection. Returns True if the map recenters."""
        return self._set_focus(location)

    def on_location_changed(self, location: Location) -> bool:
        """
        Mutation hook: if the focused location was edited, adopt the new
        version (and recenter if it moved). Other locations are ignored.
        """
        if self._focus is None or self._focus.id != location.id:
            return False
        return self._set_focus(location)

    # ── Recenter decision ────────────────────────────────────────────────────

    def needs_recenter(self, location: Location) -> bool:
        return location.lat != self.center_lat or location.lon != self.center_lon

    def state(self) -> ViewportState:
        return ViewportState(
            focus=self._focus,
            center_lat=self.center_lat,
            center_lon=self.center_lon,
            zoom=self.zoom,
            recenter=self._last_recenter,
        )

    def _set_focus(self, location: Location) -> bool:
        self._focus = location
        self._last_recenter = self.needs_recenter(location)
        if self._last_recenter:
            self.center_lat, self.center_lon = location.lat, location.lon
            logger.debug("Recentering on %s (%.5f, %.5f)", location.id, location.lat, location.lon)
            for listener in list(self._listeners):
                listener(location.lat, location.lon, self.zoom)
        return self._last_recenter
