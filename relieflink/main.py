"""
ReliefLink Map API — Application entry point.

Bootstraps FastAPI, wires up middleware, registers route groups and owns
the MapSession lifecycle.

Extension points:
  - Add new route groups with app.include_router() below
  - Add new middleware in the middleware block
  - Change what happens on startup in the lifespan context manager
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from relieflink.core.config import settings
from relieflink.core.identity import IdentityStore
from relieflink.core.rate_limit import limiter
from relieflink.routes.health import router as health_router
from relieflink.routes.identity import router as identity_router
from relieflink.routes.locations import router as locations_router
from relieflink.routes.overlay import router as overlay_router
from relieflink.routes.pins import router as pins_router
from relieflink.routes.viewport import router as viewport_router
from relieflink.services.relief_client import ReliefApiClient
from relieflink.services.session import MapSession

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the MapSession on startup and kick off the first fetch of every
    source in the background, so the gateway answers immediately with
    pending sources instead of waiting on the relief API.
    """
    logger.info("Starting ReliefLink Map API (env: %s, upstream: %s)", settings.environment, settings.relief_api_base)
    session = MapSession(ReliefApiClient(), IdentityStore(settings.identity_file))
    app.state.session = session
    initial_fetch = asyncio.create_task(session.refresh_all())
    app.state.initial_fetch = initial_fetch
    yield
    logger.info("Shutting down ReliefLink Map API")
    if not initial_fetch.done():
        initial_fetch.cancel()
        with suppress(asyncio.CancelledError):
            await initial_fetch
    session.close()


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="ReliefLink Map API",
    description=(
        "Aggregates user help requests/offers, 311 reports, shelters and food "
        "sites into one map-ready location set, with pin mutations and a "
        "hazard-zone overlay."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── Rate limiting ─────────────────────────────────────────────────────────────
# Routes opt-in with @limiter.limit("N/minute") + request: Request parameter.
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ─── Middleware ─────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(locations_router)
app.include_router(viewport_router)
app.include_router(pins_router)
app.include_router(overlay_router)
app.include_router(identity_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "ReliefLink Map API",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }
