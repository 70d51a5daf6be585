"""
summary.py — Read-only per-client rating summaries.

Clients without a stats record are left out of the result rather than
reported with zeros. Without a room filter a client with records in several
rooms is summarised from the first record the store returns; the rooms are
not merged.
"""

from typing import Iterable, Optional

from rating_service.models.rating import ClientSummary
from rating_service.services.stats_store import StatsStore


async def summarize(
    store: StatsStore,
    client_ids: Iterable[str],
    room_id: Optional[str] = None,
) -> dict[str, ClientSummary]:
    ids = list(dict.fromkeys(client_ids))
    if not ids:
        return {}

    result: dict[str, ClientSummary] = {}
    async for record in store.find_for_clients(ids, room_id):
        if record.client_id in result:
            continue
        result[record.client_id] = ClientSummary(
            given=record.ratings_given,
            received=record.ratings_received,
            avg=record.average_score,
        )
    return result
