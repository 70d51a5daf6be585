"""
test_stats.py — Emoji scoring table and atomic stats upserts.
"""

from unittest.mock import AsyncMock

import pytest
from pymongo.errors import AutoReconnect, DuplicateKeyError

from rating_service.core.errors import StoreUnavailable
from rating_service.services.stats import EMOJI_SCORES, emoji_score, update_stats
from rating_service.services.stats_store import StatsStore


class TestEmojiScore:
    @pytest.mark.parametrize(
        "emoji,score",
        [("🌕", 5), ("🌖", 4), ("🌗", 3), ("🌘", 2), ("🌑", 1)],
    )
    def test_moon_phases(self, emoji, score):
        assert emoji_score(emoji) == score

    @pytest.mark.parametrize("emoji", ["🍕", "", "5", "🌒", "🌕🌕"])
    def test_unknown_scores_zero(self, emoji):
        assert emoji_score(emoji) == 0

    def test_table_is_closed(self):
        assert sorted(EMOJI_SCORES.values()) == [1, 2, 3, 4, 5]


class TestStatsStore:
    async def test_increment_given_creates_full_record(self, fake_db):
        await StatsStore(fake_db).increment_given("alice", "room-1")

        [doc] = fake_db["ratingStats"].docs
        assert doc["clientId"] == "alice"
        assert doc["roomId"] == "room-1"
        assert (doc["ratingsGiven"], doc["ratingsReceived"], doc["scoreSum"]) == (1, 0, 0)

    async def test_increment_received_accumulates(self, fake_db):
        store = StatsStore(fake_db)
        await store.increment_received("bob", "room-1", 5)
        await store.increment_received("bob", "room-1", 2)

        [doc] = fake_db["ratingStats"].docs
        assert (doc["ratingsGiven"], doc["ratingsReceived"], doc["scoreSum"]) == (0, 2, 7)

    async def test_upsert_uses_inc_not_read_modify_write(self, fake_db):
        col = fake_db["ratingStats"]
        col.update_one = AsyncMock()

        await StatsStore(fake_db).increment_received("bob", "room-1", 3)

        col.update_one.assert_awaited_once_with(
            {"clientId": "bob", "roomId": "room-1"},
            {"$inc": {"ratingsReceived": 1, "scoreSum": 3}, "$setOnInsert": {"ratingsGiven": 0}},
            upsert=True,
        )

    async def test_duplicate_key_race_is_retried_once(self, fake_db):
        col = fake_db["ratingStats"]
        col.update_one = AsyncMock(side_effect=[DuplicateKeyError("E11000"), None])

        await StatsStore(fake_db).increment_given("alice", "room-1")

        assert col.update_one.await_count == 2

    async def test_driver_error_becomes_store_unavailable(self, fake_db):
        fake_db["ratingStats"].update_one = AsyncMock(side_effect=AutoReconnect("lost"))

        with pytest.raises(StoreUnavailable):
            await StatsStore(fake_db).increment_given("alice", "room-1")

    async def test_second_duplicate_key_error_is_not_swallowed(self, fake_db):
        fake_db["ratingStats"].update_one = AsyncMock(
            side_effect=[DuplicateKeyError("E11000"), DuplicateKeyError("E11000")]
        )

        with pytest.raises(StoreUnavailable):
            await StatsStore(fake_db).increment_given("alice", "room-1")


class TestUpdateStats:
    async def test_touches_rater_and_target(self, fake_db):
        await update_stats(StatsStore(fake_db), "alice", "bob", "room-1", "🌗")

        docs = {d["clientId"]: d for d in fake_db["ratingStats"].docs}
        assert docs["alice"]["ratingsGiven"] == 1
        assert docs["bob"]["ratingsReceived"] == 1
        assert docs["bob"]["scoreSum"] == 3

    async def test_rooms_are_separate_rows(self, fake_db):
        store = StatsStore(fake_db)
        await update_stats(store, "alice", "bob", "room-1", "🌕")
        await update_stats(store, "alice", "bob", "room-2", "🌕")

        assert len(fake_db["ratingStats"].docs) == 4

    async def test_target_failure_propagates_after_rater_update(self, fake_db):
        store = StatsStore(fake_db)
        store.increment_received = AsyncMock(side_effect=StoreUnavailable("down"))

        with pytest.raises(StoreUnavailable):
            await update_stats(store, "alice", "bob", "room-1", "🌕")

        [doc] = fake_db["ratingStats"].docs
        assert doc["clientId"] == "alice"
        assert doc["ratingsGiven"] == 1
