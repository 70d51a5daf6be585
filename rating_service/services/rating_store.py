"""
rating_store.py — Append-only access to the `ratings` collection.

Only three operations exist: insert one event, count a target's events
since an instant (inclusive), and check whether a rater→target pair has an
event after an instant (exclusive). There is no update or delete.

Driver errors are re-raised as StoreUnavailable so callers deal with a
single failure type.
"""

import logging
from datetime import datetime

from pymongo.errors import PyMongoError

from rating_service.core.database import RATINGS_COLLECTION
from rating_service.core.errors import StoreUnavailable
from rating_service.models.rating import RatingEvent

logger = logging.getLogger(__name__)


class RatingStore:
    def __init__(self, db) -> None:
        self._col = db[RATINGS_COLLECTION]

    async def insert(self, event: RatingEvent) -> None:
        try:
            await self._col.insert_one(event.to_document())
        except PyMongoError as exc:
            logger.error("Rating insert failed: %s", exc)
            raise StoreUnavailable("Rating store unavailable") from exc

    async def count_received_since(self, target: str, room_id: str, since: datetime) -> int:
        """Number of events for target in room with timestamp >= since."""
        try:
            return await self._col.count_documents(
                {"target": target, "roomId": room_id, "timestamp": {"$gte": since}}
            )
        except PyMongoError as exc:
            logger.error("Rating count failed: %s", exc)
            raise StoreUnavailable("Rating store unavailable") from exc

    async def exists_from_rater_since(
        self, rater: str, target: str, room_id: str, since: datetime
    ) -> bool:
        """True if rater rated target in room with timestamp > since."""
        try:
            doc = await self._col.find_one(
                {
                    "rater": rater,
                    "target": target,
                    "roomId": room_id,
                    "timestamp": {"$gt": since},
                },
                projection={"_id": 1},
            )
        except PyMongoError as exc:
            logger.error("Rating lookup failed: %s", exc)
            raise StoreUnavailable("Rating store unavailable") from exc
        return doc is not None
