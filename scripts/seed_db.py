#!/usr/bin/env python3
"""
seed_db.py — Populate MongoDB with sample ratings for local development.

Inserts:
  - A handful of ratings in a demo room, pushed through the real
    submission pipeline so the stats collection matches the events
  - Creates required indexes

Usage:
    python scripts/seed_db.py

Requires:
    pip install -e .
    MongoDB running locally (or set MONGO_URI / MONGO_DB_NAME env vars)

Safe to re-run: deletes the demo room's data first, then re-inserts.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from motor.motor_asyncio import AsyncIOMotorClient

from rating_service.core.config import settings
from rating_service.core.database import RATINGS_COLLECTION, STATS_COLLECTION, ensure_indexes
from rating_service.core.errors import RateLimited
from rating_service.services.submission import SubmissionPipeline
from rating_service.services.summary import summarize

SEED_ROOM = "seed-demo-room"

# (rater, target, emoji, hours ago)
SAMPLE_RATINGS = [
    ("ada",    "grace",  "🌕", 30),
    ("linus",  "grace",  "🌖", 5),
    ("ada",    "linus",  "🌗", 4),
    ("grace",  "ada",    "🌕", 3),
    ("ken",    "grace",  "🌘", 2),
    ("dennis", "grace",  "🌖", 2),
    ("barbara", "grace", "🌕", 1),
    ("ada",    "grace",  "🌑", 1),
    ("linus",  "ken",    "🌚", 1),   # not a scored symbol → counts, scores 0
]


async def seed() -> None:
    print("Connecting to MongoDB...")
    client = AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)
    db = client[settings.mongo_db_name]

    try:
        await client.admin.command("ping")
        print("Connected.")

        # ─── Clean up previous seed data ──────────────────────────────────────
        deleted = await db[RATINGS_COLLECTION].delete_many({"roomId": SEED_ROOM})
        await db[STATS_COLLECTION].delete_many({"roomId": SEED_ROOM})
        print(f"Removed {deleted.deleted_count} existing seed ratings.")

        await ensure_indexes(db)
        print("Indexes ensured.")

        # ─── Submit sample ratings ────────────────────────────────────────────
        pipeline = SubmissionPipeline.from_db(db)
        now = datetime.now(timezone.utc)
        accepted = 0
        for rater, target, emoji, hours_ago in SAMPLE_RATINGS:
            claims = {"clientId": rater, "targetClientId": target, "roomId": SEED_ROOM, "emoji": emoji}
            try:
                await pipeline.submit(claims, now - timedelta(hours=hours_ago))
                accepted += 1
            except RateLimited:
                print(f"  rate limited: {rater} -> {target}")
        print(f"Accepted {accepted}/{len(SAMPLE_RATINGS)} ratings.")

        print("\nSeed complete! Summaries:")
        participants = {p for r in SAMPLE_RATINGS for p in r[:2]}
        summaries = await summarize(pipeline.stats_store, sorted(participants), SEED_ROOM)
        for client_id, summary in summaries.items():
            print(f"  {client_id}: given={summary.given} received={summary.received} avg={summary.avg}")

    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(seed())
