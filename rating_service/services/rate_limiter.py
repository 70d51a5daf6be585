"""
rate_limiter.py — Accept / reject decision for a rating submission.

Two predicates over the stored rating history:

  daily cap   the target has received >= daily_cap ratings in this room
              since local midnight (inclusive lower bound)
  cooldown    this rater has rated this target in this room within the
              last cooldown window (exclusive lower bound)

A submission is denied only when BOTH hold. A target below the cap can be
rated by anyone, including a rater still inside their cooldown; a target at
the cap can still be rated by raters who have not rated it in the window.
This is intentional. Keep it an AND, not an OR.

The check reads and the pipeline writes afterwards, without isolation.
Two concurrent submissions can both be allowed where running them one after
the other would deny the second, so a target may end up one rating over the
cap. That overshoot is tolerated. A stricter variant would fold the check
into a conditional write (e.g. a per-target daily counter document
incremented with a `count < cap` filter). Not done here.

USAGE
─────
    limiter = RatingRateLimiter(RatingStore(db), daily_cap=5)
    if await limiter.decide("alice", "bob", "room-1", now) is Decision.DENY:
        ...
"""

import logging
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Optional

from rating_service.core.errors import InvalidClaims
from rating_service.services.rating_store import RatingStore

logger = logging.getLogger(__name__)

DEFAULT_DAILY_CAP = 5
DEFAULT_COOLDOWN = timedelta(hours=24)


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


def start_of_day(now: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """
    Midnight of the day containing `now`, in `tz` (server local time when None).

    Naive datetimes are taken to be server local time. The offset is
    resolved for midnight itself, which differs from the offset at `now`
    on DST transition days.
    """
    local = now.astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    if tz is None:
        # astimezone(None) attaches the fixed offset in effect at `now`.
        return midnight.replace(tzinfo=None).astimezone()
    return midnight


class RatingRateLimiter:
    def __init__(
        self,
        store: RatingStore,
        daily_cap: int = DEFAULT_DAILY_CAP,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        day_tz: Optional[tzinfo] = None,
    ) -> None:
        self._store = store
        self.daily_cap = daily_cap
        self.cooldown = cooldown
        self.day_tz = day_tz

    async def target_at_daily_cap(self, target: str, room_id: str, now: datetime) -> bool:
        since = start_of_day(now, self.day_tz)
        count = await self._store.count_received_since(target, room_id, since)
        return count >= self.daily_cap

    async def rated_recently(self, rater: str, target: str, room_id: str, now: datetime) -> bool:
        cutoff = now - self.cooldown
        return await self._store.exists_from_rater_since(rater, target, room_id, cutoff)

    async def decide(self, rater: str, target: str, room_id: str, now: datetime) -> Decision:
        """Return DENY only when the target is at the daily cap AND the pair is in cooldown."""
        if not rater or not target:
            raise InvalidClaims("rater and target are required")

        # Short-circuits: the cooldown lookup only runs for targets at the cap.
        if await self.target_at_daily_cap(target, room_id, now) and await self.rated_recently(
            rater, target, room_id, now
        ):
            logger.info("Rating denied: %s -> %s in %s (cap reached, cooldown active)", rater, target, room_id)
            return Decision.DENY
        return Decision.ALLOW
