"""
Application configuration loaded from environment variables.

Uses pydantic-settings for type-safe env var parsing with automatic
.env file loading. Nothing about the upstream relief API is hard-coded
outside this file.

To extend: add new fields here and document them in .env.example.
See https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Houston Public Works floodplain + FEMA National Flood Hazard Layer.
# Both are ArcGIS FeatureServer/MapServer query endpoints returning GeoJSON.
_DEFAULT_OVERLAY_LAYERS = (
    "fema_flood_zones=https://hazards.fema.gov/arcgis/rest/services/public/NFHL/MapServer/28/query,"
    "houston_floodplain=https://services.arcgis.com/NummVBqZSIJKUeVR/arcgis/rest/services/Floodplain/FeatureServer/0/query"
)


class Settings(BaseSettings):
    # ─── Core ──────────────────────────────────────────────────────
    environment: str = "development"
    debug: bool = False

    # ─── Upstream relief API ───────────────────────────────────────
    # Pins, shelters, food and 311 live under the prefix; /healthz lives
    # at the root of the same host.
    relief_api_url: str = "http://localhost:8000"
    relief_api_prefix: str = "/api"
    http_timeout_seconds: float = 10.0

    # ─── Anonymous author identity ─────────────────────────────────
    # One token per installation. Created on first use, never rotated.
    identity_file: Path = Path.home() / ".relieflink" / "author_id"

    # ─── Viewport ──────────────────────────────────────────────────
    # Houston, TX. Used as the map center until the first recenter.
    default_center_lat: float = 29.7604
    default_center_lon: float = -95.3698
    default_zoom: int = 10

    # ─── Pin query defaults ────────────────────────────────────────
    pin_kinds_str: str = "need,offer"
    pin_radius_mi: float | None = None

    # ─── Hazard overlay ────────────────────────────────────────────
    # Comma-separated name=url pairs, one per layer.
    overlay_layers_str: str = _DEFAULT_OVERLAY_LAYERS

    # ─── CORS ──────────────────────────────────────────────────────
    cors_origins_str: str = "http://localhost:5173,http://localhost:3000"

    # ─── Rate limiting ─────────────────────────────────────────────
    create_rate_limit: str = "20/minute"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Don't fail on unknown env vars
    )

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins_str.split(",") if o.strip()]

    @property
    def pin_kinds(self) -> list[str]:
        return [k.strip() for k in self.pin_kinds_str.split(",") if k.strip()]

    @property
    def overlay_layers(self) -> dict[str, str]:
        """Parse overlay_layers_str into an ordered {name: url} mapping."""
        layers: dict[str, str] = {}
        for pair in self.overlay_layers_str.split(","):
            name, sep, url = pair.strip().partition("=")
            if sep and name.strip() and url.strip():
                layers[name.strip()] = url.strip()
        return layers

    @property
    def relief_api_base(self) -> str:
        return self.relief_api_url.rstrip("/") + self.relief_api_prefix


# Module-level singleton — import this everywhere instead of instantiating Settings()
settings = Settings()
