"""
pytest configuration and shared fixtures for the Rating Service tests.

Key concern: tests must not require a live MongoDB or trust hub.
We achieve this by:
  1. Patching connect_to_mongo / close_mongo_connection to no-ops so
     FastAPI's lifespan doesn't try to reach a real database.
  2. Setting db_client.client = None (disconnected) so the health check
     reports "disconnected" and routes without an override return 503.
  3. Providing FakeDB, an in-memory stand-in for the subset of the Motor
     API the stores use, injected through app.dependency_overrides.
  4. Loading an HS256 verification key directly instead of bootstrapping.
"""

import asyncio
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("ENVIRONMENT", "test")

TEST_SECRET = "test-signing-secret"


# ── In-memory MongoDB emulator ─────────────────────────────────────────────────

class FakeCollection:
    """
    Minimal async replica of a Motor collection.

    Reads take their snapshot, then yield to the event loop once
    (asyncio.sleep(0)) so concurrent submissions interleave the way they do
    against a real server: both can see the same history before either writes.
    """

    def __init__(self):
        self.docs: list[dict] = []
        self.indexes: list[tuple] = []

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return "_".join(f"{k}_{d}" for k, d in keys)

    async def insert_one(self, doc: dict):
        oid = ObjectId()
        self.docs.append({**doc, "_id": oid})
        result = MagicMock()
        result.inserted_id = oid
        return result

    async def count_documents(self, query: dict) -> int:
        count = sum(1 for d in self.docs if self._matches(d, query))
        await asyncio.sleep(0)
        return count

    async def find_one(self, query: dict, projection=None):
        found = next((d for d in self.docs if self._matches(d, query)), None)
        await asyncio.sleep(0)
        return found

    async def update_one(self, query: dict, update: dict, upsert: bool = False):
        result = MagicMock()
        for doc in self.docs:
            if self._matches(doc, query):
                for field, amount in update.get("$inc", {}).items():
                    doc[field] = doc.get(field, 0) + amount
                result.matched_count = 1
                return result
        result.matched_count = 0
        if upsert:
            doc = {**query, **update.get("$setOnInsert", {}), "_id": ObjectId()}
            for field, amount in update.get("$inc", {}).items():
                doc[field] = doc.get(field, 0) + amount
            self.docs.append(doc)
        return result

    def find(self, query=None):
        return _FakeCursor([d for d in self.docs if self._matches(d, query or {})])

    @staticmethod
    def _matches(doc: dict, query: dict) -> bool:
        for key, cond in query.items():
            value = doc.get(key)
            if isinstance(cond, dict):
                for op, operand in cond.items():
                    if op == "$gt" and not (value is not None and value > operand):
                        return False
                    if op == "$gte" and not (value is not None and value >= operand):
                        return False
                    if op == "$in" and value not in operand:
                        return False
            elif value != cond:
                return False
        return True


class _FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    async def __aiter__(self):
        for doc in self._docs:
            yield doc


class FakeDB:
    """Fake MongoDB database — lazily creates collections."""

    def __init__(self):
        self._cols: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._cols:
            self._cols[name] = FakeCollection()
        return self._cols[name]


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
async def mock_db():
    """
    Patch the MongoDB lifecycle for every test.

    - connect_to_mongo / close_mongo_connection → no-op AsyncMocks
    - db_client.client / db_client.db → None (disconnected)
    """
    with (
        patch("rating_service.core.database.connect_to_mongo", new_callable=AsyncMock),
        patch("rating_service.core.database.close_mongo_connection", new_callable=AsyncMock),
    ):
        import rating_service.core.database as db_module

        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


@pytest.fixture(autouse=True)
def reset_http_limiter():
    """Clear slowapi's in-memory counters so requests don't bleed across tests."""
    from rating_service.core.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture()
def fake_db():
    """Fresh in-memory DB for each test."""
    return FakeDB()


@pytest.fixture()
def test_key():
    """A loaded HS256 verification key, independent of the process singleton."""
    from rating_service.core.security import VerificationKey

    key = VerificationKey()
    key.set(TEST_SECRET, "HS256", "test")
    return key


@pytest.fixture()
def make_token():
    """Sign rating tokens with the test secret."""
    from rating_service.core.security import create_rating_token

    def _make(rater="alice", target="bob", room="room-1", emoji="🌕", **extra):
        claims = {"clientId": rater, "targetClientId": target, "roomId": room, "emoji": emoji, **extra}
        claims = {k: v for k, v in claims.items() if v is not None}
        return create_rating_token(claims, TEST_SECRET, "HS256")

    return _make


@pytest.fixture()
async def client(mock_db):  # noqa: ARG001 — mock_db must run first
    """HTTPX async test client wired to the app with no database."""
    from rating_service.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def api_client(fake_db, test_key):
    """
    HTTPX client with get_db overridden to the in-memory FakeDB and the
    verification key overridden to the test key.
    """
    from rating_service.core.database import get_db
    from rating_service.core.security import get_verification_key
    from rating_service.main import app

    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_verification_key] = lambda: test_key
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
