"""
stats.py — Emoji scoring and the per-rating stats update.

One accepted rating touches two StatsRecords: the rater's ratingsGiven and
the target's ratingsReceived + scoreSum. The two upserts are independent;
if the second fails after the first succeeded the caller sees the error
and the rater's counter stays incremented.
"""

from rating_service.services.stats_store import StatsStore

# Moon phases, full (best) to new (worst). Anything else scores 0.
EMOJI_SCORES: dict[str, int] = {
    "🌕": 5,
    "🌖": 4,
    "🌗": 3,
    "🌘": 2,
    "🌑": 1,
}
UNKNOWN_EMOJI_SCORE = 0


def emoji_score(emoji: str) -> int:
    return EMOJI_SCORES.get(emoji, UNKNOWN_EMOJI_SCORE)


async def update_stats(store: StatsStore, rater: str, target: str, room_id: str, emoji: str) -> None:
    """Record one rating in both participants' stats. Store errors propagate."""
    score = emoji_score(emoji)
    await store.increment_given(rater, room_id)
    await store.increment_received(target, room_id, score)
