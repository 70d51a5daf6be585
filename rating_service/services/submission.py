"""
submission.py — Rating submission pipeline.

    claims ──validate──▶ rate limiter ──allow──▶ insert RatingEvent ──▶ update stats
              │                │
        InvalidClaims     RateLimited          (no write on either rejection)

The pipeline keeps no state of its own: the stores are handed in by the
caller (built per request from the injected database), every call reads
the current history and writes back before returning.

There is no transaction around the insert and the two stats upserts. If a
stats upsert fails after the insert, PartialStatsFailure is raised and the
event details are logged so the counters can be reconciled by hand.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from rating_service.core.config import Settings, settings
from rating_service.core.errors import InvalidClaims, PartialStatsFailure, RateLimited, StoreUnavailable
from rating_service.models.rating import RatingClaims, RatingEvent
from rating_service.services.rate_limiter import Decision, RatingRateLimiter
from rating_service.services.rating_store import RatingStore
from rating_service.services.stats import update_stats
from rating_service.services.stats_store import StatsStore

logger = logging.getLogger(__name__)

ClaimsInput = Union[RatingClaims, Mapping[str, Any], None]


@dataclass
class SubmissionResult:
    accepted: bool
    event: RatingEvent


def validate_claims(raw: ClaimsInput) -> RatingClaims:
    """Turn verified token claims into RatingClaims or raise InvalidClaims."""
    if raw is None:
        raise InvalidClaims("Invalid rating token")
    if isinstance(raw, RatingClaims):
        return raw
    try:
        return RatingClaims.model_validate(raw)
    except ValidationError as exc:
        missing = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        raise InvalidClaims("Invalid rating token", data={"fields": missing}) from exc


class SubmissionPipeline:
    def __init__(
        self,
        rating_store: RatingStore,
        stats_store: StatsStore,
        rate_limiter: RatingRateLimiter,
        allow_self_rating: bool = True,
    ) -> None:
        self.rating_store = rating_store
        self.stats_store = stats_store
        self.rate_limiter = rate_limiter
        self.allow_self_rating = allow_self_rating

    @classmethod
    def from_db(cls, db, config: Optional[Settings] = None) -> "SubmissionPipeline":
        """Wire the stores and rate limiter for one database handle."""
        config = config or settings
        rating_store = RatingStore(db)
        day_tz = ZoneInfo(config.rating_day_timezone) if config.rating_day_timezone else None
        limiter = RatingRateLimiter(
            rating_store,
            daily_cap=config.rating_daily_cap,
            cooldown=timedelta(hours=config.rating_cooldown_hours),
            day_tz=day_tz,
        )
        return cls(
            rating_store,
            StatsStore(db),
            limiter,
            allow_self_rating=config.allow_self_rating,
        )

    async def submit(self, claims: ClaimsInput, now: Optional[datetime] = None) -> SubmissionResult:
        """
        Validate, rate-limit, record and count one rating.

        Raises InvalidClaims / RateLimited before any write, StoreUnavailable
        when the store fails before the event is durable, and
        PartialStatsFailure when it fails after.
        """
        now = now or datetime.now(tz=timezone.utc)
        rating = validate_claims(claims)

        if not self.allow_self_rating and rating.rater == rating.target:
            raise InvalidClaims("Self-rating is not allowed")

        decision = await self.rate_limiter.decide(rating.rater, rating.target, rating.room_id, now)
        if decision is Decision.DENY:
            raise RateLimited("Already rated recently")

        event = RatingEvent(
            rater=rating.rater,
            target=rating.target,
            room_id=rating.room_id,
            emoji=rating.emoji,
            timestamp=now,
        )
        await self.rating_store.insert(event)

        try:
            await update_stats(self.stats_store, event.rater, event.target, event.room_id, event.emoji)
        except StoreUnavailable as exc:
            logger.error(
                "Rating recorded without stats: %s -> %s in %s = %s at %s",
                event.rater, event.target, event.room_id, event.emoji, event.timestamp.isoformat(),
            )
            raise PartialStatsFailure(
                "Rating recorded but stats update failed",
                data={"event": event.model_dump(mode="json", by_alias=True)},
            ) from exc

        logger.info("Rating recorded: %s -> %s = %s (room %s)", event.rater, event.target, event.emoji, event.room_id)
        return SubmissionResult(accepted=True, event=event)
