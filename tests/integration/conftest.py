"""Integration-test conftest — skip guards and real-infra fixtures.

Integration tests require:
    PRESSOGRAPH_TEST_INTEGRATION=1   (set in shell before running)
    Redis on settings.redis_url       (default localhost:6379)
    Postgres on settings.postgres_url (default localhost:5432/pressograph)

Run with:
    PRESSOGRAPH_TEST_INTEGRATION=1 pytest tests/integration/ -v
"""

from __future__ import annotations

import os
import uuid

import pytest
import pytest_asyncio

from pressograph.preferences.cache import PreferenceCache
from pressograph.preferences.kinds import KINDS
from pressograph.preferences.repository import PreferenceRepository
from pressograph.preferences.sync import PreferenceManager
from pressograph.tools.pg_client import PgClient
from pressograph.tools.redis_client import RedisClient

pytestmark = pytest.mark.skipif(
    not os.getenv("PRESSOGRAPH_TEST_INTEGRATION"),
    reason="Set PRESSOGRAPH_TEST_INTEGRATION=1 to run integration tests",
)


@pytest.fixture
def user_id() -> str:
    return f"it-{uuid.uuid4().hex[:12]}"


@pytest_asyncio.fixture
async def live_redis():
    client = RedisClient(key_prefix="pressograph-test:")
    if not await client.ping():
        pytest.skip("Redis not reachable")
    yield client
    await client.close()


@pytest_asyncio.fixture
async def live_pg():
    client = PgClient()
    if not await client.connect():
        pytest.skip("Postgres not reachable")
    yield client
    await client.close()


@pytest_asyncio.fixture
async def live_manager(live_redis, live_pg, user_id):
    manager = PreferenceManager(PreferenceCache(live_redis), PreferenceRepository(live_pg))
    yield manager
    await live_pg.execute("DELETE FROM user_preferences WHERE user_id = $1", user_id)
    for kind in KINDS.values():
        await live_redis.delete(kind.cache_key(user_id))
