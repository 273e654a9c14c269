"""
overlay_loader.py — On-demand hazard-zone overlay.

Lifecycle is independent of the location aggregate and driven only by the
user's toggle:

  off → on   fetch every configured layer concurrently. A layer that fails
             is recorded and skipped; the overlay turns on with whatever
             loaded. If nothing loaded, it stays off and OverlayLoadFailure
             is raised.
  on  → off  discard all loaded layers.

Nothing is cached across toggle cycles: turning the overlay back on always
re-fetches. A toggle-off that lands while a load is still running wins; the
late load result is discarded.

Each layer is an ArcGIS query endpoint asked for every record as GeoJSON
(`where=1=1&outFields=*&f=geojson`).
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from relieflink.core.config import settings
from relieflink.core.errors import OverlayLoadFailure
from relieflink.models.overlay import OverlayFeature, OverlayLayer, OverlayState

logger = logging.getLogger(__name__)

_ALL_RECORDS_QUERY = {"where": "1=1", "outFields": "*", "f": "geojson"}


def feature_label(properties: dict[str, Any]) -> str:
    """One "key: value" line per property, in the order the service sent them."""
    return "\n".join(f"{key}: {value}" for key, value in properties.items())


class OverlayLoader:
    def __init__(
        self,
        layers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.layer_urls = dict(layers if layers is not None else settings.overlay_layers)
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._transport = transport
        self._enabled = False
        self._layers: list[OverlayLayer] = []
        self._failures: dict[str, str] = {}
        self._loaded_at: Optional[str] = None
        self._generation = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    def state(self) -> OverlayState:
        return OverlayState(
            enabled=self._enabled,
            layers=list(self._layers),
            failures=dict(self._failures),
            feature_count=sum(len(layer.features) for layer in self._layers),
            loaded_at=self._loaded_at,
        )

    async def toggle(self, enabled: bool) -> OverlayState:
        if enabled:
            return await self.enable()
        return self.disable()

    async def enable(self) -> OverlayState:
        if self._enabled:
            return self.state()

        self._generation += 1
        generation = self._generation

        names = list(self.layer_urls)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            results = await asyncio.gather(
                *(self._load_layer(client, name, self.layer_urls[name]) for name in names),
                return_exceptions=True,
            )

        if generation != self._generation:
            logger.debug("Overlay load superseded by a later toggle, discarding")
            return self.state()

        layers: list[OverlayLayer] = []
        failures: dict[str, str] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                failures[name] = str(result) or result.__class__.__name__
                logger.warning("Overlay layer %s failed: %s", name, failures[name])
            else:
                layers.append(result)

        self._failures = failures
        if not layers:
            raise OverlayLoadFailure(failures)

        self._layers = layers
        self._enabled = True
        self._loaded_at = datetime.now(timezone.utc).isoformat()
        logger.info(
            "Overlay on: %d layer(s), %d feature(s), %d failed",
            len(layers),
            sum(len(layer.features) for layer in layers),
            len(failures),
        )
        return self.state()

    def disable(self) -> OverlayState:
        self._generation += 1
        self._enabled = False
        self._layers = []
        self._failures = {}
        self._loaded_at = None
        logger.info("Overlay off")
        return self.state()

    async def _load_layer(self, client: httpx.AsyncClient, name: str, url: str) -> OverlayLayer:
        response = await client.get(url, params=_ALL_RECORDS_QUERY)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict) or "features" not in data:
            raise ValueError("response is not a GeoJSON FeatureCollection")

        features = []
        for feat in data.get("features") or []:
            props = feat.get("properties") or {}
            features.append(
                OverlayFeature(
                    layer=name,
                    geometry=feat.get("geometry"),
                    properties=props,
                    label=feature_label(props),
                )
            )
        return OverlayLayer(name=name, features=features)
