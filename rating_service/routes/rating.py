"""
rating.py — Rating submission and summary routes.

Routes:
  POST /api/rating   — submit one rating carried by a signed token
  POST /api/summary  — given / received / average for a batch of clients

The database handle is injected with get_db() and the stores are built per
request from it; nothing here holds a module-level collection reference.

Service errors (errors.py) carry their HTTP status and are re-raised as
HTTPException, so FastAPI serialises them as:
  { "detail": "..." }
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from rating_service.core.config import settings
from rating_service.core.database import get_db
from rating_service.core.errors import RatingServiceError
from rating_service.core.rate_limit import limiter
from rating_service.core.security import VerificationKey, decode_rating_token, get_verification_key
from rating_service.models.rating import ClientSummary, RatingRequest, RatingResponse, SummaryRequest
from rating_service.services.stats_store import StatsStore
from rating_service.services.submission import SubmissionPipeline
from rating_service.services.summary import summarize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rating"])


# ── Dependencies ──────────────────────────────────────────────────────────────

def _require_db(db=Depends(get_db)):
    if db is None:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db


def _pipeline(db=Depends(_require_db)) -> SubmissionPipeline:
    return SubmissionPipeline.from_db(db)


def _stats_store(db=Depends(_require_db)) -> StatsStore:
    return StatsStore(db)


def _to_http(exc: RatingServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


# ── Routes ────────────────────────────────────────────────────────────────────

@router.post("/rating", response_model=RatingResponse)
@limiter.limit(settings.rating_request_limit)
async def submit_rating(
    request: Request,
    payload: RatingRequest,
    pipeline: SubmissionPipeline = Depends(_pipeline),
    key: VerificationKey = Depends(get_verification_key),
):
    """
    Verify the rating token and run it through the submission pipeline.

    200 accepted · 400 bad token / claims · 429 rate limited ·
    503 database, stats or verification key unavailable.
    """
    try:
        claims = decode_rating_token(payload.token, key)
        await pipeline.submit(claims)
    except RatingServiceError as exc:
        if exc.status_code >= 500:
            logger.warning("Rating submission failed (%s): %s", exc.code, exc.message)
        raise _to_http(exc) from exc

    return RatingResponse(accepted=True)


@router.post("/summary", response_model=dict[str, ClientSummary])
async def get_summary(payload: SummaryRequest, store: StatsStore = Depends(_stats_store)):
    """Return {clientId: {given, received, avg}} for clients that have stats."""
    try:
        return await summarize(store, payload.client_ids, payload.room_id)
    except RatingServiceError as exc:
        raise _to_http(exc) from exc
