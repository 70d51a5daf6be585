"""
MongoDB connection management using Motor (async driver).

Architecture decision: single DatabaseClient instance shared across all
requests via a module-level singleton. Routes never touch the singleton
directly; they receive the database through the get_db() dependency and
hand it to the store adapters, so tests can swap in a fake database with
app.dependency_overrides.

The connection is opened in FastAPI's lifespan (startup), indexes are
ensured once, and the client is closed on shutdown.
"""

import logging
import re

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from rating_service.core.config import settings

logger = logging.getLogger(__name__)

RATINGS_COLLECTION = "ratings"
STATS_COLLECTION = "ratingStats"


class DatabaseClient:
    """
    Holds the Motor client and selected database.

    A class rather than bare globals so tests can replace .client and .db.
    """

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None


# Module-level singleton — all app code references this object
db_client = DatabaseClient()


async def ensure_indexes(db) -> None:
    """
    Create the indexes the rating queries rely on. Idempotent.

      ratings     (rater, target, roomId, timestamp desc) — cooldown lookup
      ratings     (target, roomId, timestamp desc)        — daily-cap count
      ratingStats (clientId, roomId) unique               — upsert key
    """
    await db[RATINGS_COLLECTION].create_index(
        [("rater", ASCENDING), ("target", ASCENDING), ("roomId", ASCENDING), ("timestamp", DESCENDING)]
    )
    await db[RATINGS_COLLECTION].create_index(
        [("target", ASCENDING), ("roomId", ASCENDING), ("timestamp", DESCENDING)]
    )
    await db[STATS_COLLECTION].create_index(
        [("clientId", ASCENDING), ("roomId", ASCENDING)],
        unique=True,
    )


async def connect_to_mongo() -> None:
    """
    Create the MongoDB connection, validate it with a ping and ensure indexes.

    Called once at app startup (via lifespan). Fails gracefully if
    MongoDB is unavailable: the API still answers /health, and the rating
    endpoints return 503 until the process is restarted with a reachable DB.
    """
    logger.info("Connecting to MongoDB at %s", _redact_uri(settings.mongo_uri))
    try:
        kwargs = {
            "serverSelectionTimeoutMS": settings.mongo_timeout_ms,
            # Timestamps come back as aware UTC datetimes so they compare
            # cleanly with the aware `now` used by the rate limiter.
            "tz_aware": True,
        }
        if settings.mongo_uri.startswith("mongodb+srv://"):
            # Atlas: use certifi's CA bundle instead of the system store.
            kwargs["tlsCAFile"] = certifi.where()
        db_client.client = AsyncIOMotorClient(settings.mongo_uri, **kwargs)
        db_client.db = db_client.client[settings.mongo_db_name]
        await db_client.client.admin.command("ping")
        await ensure_indexes(db_client.db)
        logger.info("MongoDB connection established (db: %s)", settings.mongo_db_name)
    except Exception as exc:
        logger.warning(
            "MongoDB unavailable at startup: %s. "
            "API running in degraded mode, rating endpoints will return 503.",
            exc,
        )
        db_client.client = None
        db_client.db = None


async def close_mongo_connection() -> None:
    """Close the MongoDB connection gracefully on app shutdown."""
    if db_client.client is not None:
        db_client.client.close()
        logger.info("MongoDB connection closed")


def get_db() -> AsyncIOMotorDatabase | None:
    """
    FastAPI dependency — inject the database into route handlers.

    Returns None when MongoDB is unavailable; the rating routes turn that
    into a 503 before doing any work.
    """
    return db_client.db


def _redact_uri(uri: str) -> str:
    """Strip credentials from URI before logging."""
    return re.sub(r"://[^:]+:[^@]+@", "://<redacted>@", uri)
