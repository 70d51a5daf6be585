"""
Health check endpoint.

Used by:
  - Docker HEALTHCHECK instruction
  - Load balancers / orchestrators
  - Room front ends checking API connectivity

Reports DB connectivity and whether the rating token verification key has
been loaded, so callers can tell "API down" from "API up but not ready to
accept ratings".
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from rating_service.core import database as db_module
from rating_service.core import security as security_module

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str  # Always "ok" if the API process is alive
    version: str
    database: str  # "connected" | "disconnected"
    verification_key: str  # "ready" | "pending"
    environment: str


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    """
    Returns the liveness status of the API, its database connection and
    the verification key bootstrap.

    The API is considered healthy (HTTP 200) even when the database is
    disconnected or the key is still pending.
    """
    from rating_service.core.config import settings

    db_status = "disconnected"
    try:
        # Access via module reference so tests can patch db_module.db_client
        if db_module.db_client.client is not None:
            await db_module.db_client.client.admin.command("ping")
            db_status = "connected"
    except Exception as exc:
        logger.warning("DB ping failed: %s", exc)

    key_status = "ready" if security_module.verification_key.is_ready else "pending"

    return HealthResponse(
        status="ok",
        version="0.1.0",
        database=db_status,
        verification_key=key_status,
        environment=settings.environment,
    )
