"""
stats_store.py — Atomic counters in the `ratingStats` collection.

Every write is a single update_one with $inc and upsert=True, so two
requests touching the same (clientId, roomId) row never lose an increment.
Counters the upsert does not increment are initialised to 0 with
$setOnInsert, which keeps every stored record complete.

The unique (clientId, roomId) index means two concurrent upserts on a
missing row can race to insert; the loser gets DuplicateKeyError and is
retried once, at which point the row exists and the $inc applies.
"""

import logging
from typing import AsyncIterator, Iterable, Optional

from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from rating_service.core.database import STATS_COLLECTION
from rating_service.core.errors import StoreUnavailable
from rating_service.models.rating import StatsRecord

logger = logging.getLogger(__name__)


class StatsStore:
    def __init__(self, db) -> None:
        self._col = db[STATS_COLLECTION]

    async def increment_given(self, client_id: str, room_id: str) -> None:
        await self._upsert_inc(
            client_id,
            room_id,
            inc={"ratingsGiven": 1},
            on_insert={"ratingsReceived": 0, "scoreSum": 0},
        )

    async def increment_received(self, client_id: str, room_id: str, score: int) -> None:
        await self._upsert_inc(
            client_id,
            room_id,
            inc={"ratingsReceived": 1, "scoreSum": score},
            on_insert={"ratingsGiven": 0},
        )

    async def find_for_clients(
        self, client_ids: Iterable[str], room_id: Optional[str] = None
    ) -> AsyncIterator[StatsRecord]:
        """Yield stored records for the given clients, optionally in one room."""
        query: dict = {"clientId": {"$in": list(client_ids)}}
        if room_id is not None:
            query["roomId"] = room_id
        try:
            async for doc in self._col.find(query):
                try:
                    record = StatsRecord.model_validate(doc)
                except ValidationError as exc:
                    logger.warning("Skipping malformed stats record %s: %s", doc.get("_id"), exc)
                    continue
                yield record
        except PyMongoError as exc:
            logger.error("Stats query failed: %s", exc)
            raise StoreUnavailable("Stats store unavailable") from exc

    async def _upsert_inc(self, client_id: str, room_id: str, inc: dict, on_insert: dict) -> None:
        key = {"clientId": client_id, "roomId": room_id}
        update = {"$inc": inc, "$setOnInsert": on_insert}
        try:
            try:
                await self._col.update_one(key, update, upsert=True)
            except DuplicateKeyError:
                logger.debug("Concurrent stats upsert for %s/%s, retrying", client_id, room_id)
                await self._col.update_one(key, update, upsert=True)
        except PyMongoError as exc:
            logger.error("Stats upsert failed for %s/%s: %s", client_id, room_id, exc)
            raise StoreUnavailable("Stats store unavailable") from exc
