"""
Rating Service — Application entry point.

Bootstraps FastAPI, wires up middleware, registers route groups, and manages
the startup phases:

  1. MongoDB connection + index creation (awaited)
  2. Rating token verification key bootstrap (background task: the key may
     come from the trust hub, which can be slow or briefly unreachable;
     submissions are rejected with 503 until it completes)

Run locally:
    uvicorn rating_service.main:app --port 4000 --reload
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rating_service.core import database, security
from rating_service.core.config import settings
from rating_service.core.rate_limit import limiter
from rating_service.routes.health import router as health_router
from rating_service.routes.rating import router as rating_router

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
    Manage startup and shutdown lifecycle.

    Code before `yield` runs on startup; code after runs on shutdown.
    """
    logger.info("Starting Rating Service (env: %s)", settings.environment)
    await database.connect_to_mongo()
    key_task = asyncio.create_task(security.verification_key.bootstrap())
    yield
    logger.info("Shutting down Rating Service")
    if not key_task.done():
        key_task.cancel()
        try:
            await key_task
        except asyncio.CancelledError:
            logger.info("Verification key bootstrap cancelled")
    await database.close_mongo_connection()


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Rating Service",
    description="Emoji ratings between room participants, with cooldown / daily-cap limits and summaries.",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── HTTP flood guard ──────────────────────────────────────────────────────────
# Attach the limiter to app state so slowapi can find it.
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
app.include_router(rating_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "Rating Service",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }
