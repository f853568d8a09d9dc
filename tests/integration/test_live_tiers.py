"""End-to-end preference flows against live Redis and Postgres."""

from __future__ import annotations

import os

import pytest

from pressograph.preferences.context import RequestContext
from pressograph.preferences.kinds import LOCALE, THEME
from pressograph.preferences.repository import PreferenceRepository

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not os.getenv("PRESSOGRAPH_TEST_INTEGRATION"),
        reason="Set PRESSOGRAPH_TEST_INTEGRATION=1 to run integration tests",
    ),
]


@pytest.mark.asyncio
async def test_write_then_read_from_fresh_session(live_manager, live_redis, live_pg, user_id):
    result = await live_manager.theme.set(RequestContext(), "dark", user_id)
    assert result.success is True

    assert await live_manager.theme.get(RequestContext(), user_id) == "dark"
    ttl = await live_redis.ttl(THEME.cache_key(user_id))
    assert ttl is not None and 0 < ttl <= 3600

    record = await PreferenceRepository(live_pg).fetch_record(user_id)
    assert record.theme_preference == "dark"


@pytest.mark.asyncio
async def test_database_backfills_cache(live_manager, live_redis, user_id):
    await live_manager.locale.set(RequestContext(), "ru", user_id)
    await live_redis.delete(LOCALE.cache_key(user_id))

    ctx = RequestContext()
    assert await live_manager.locale.get(ctx, user_id) == "ru"
    assert ctx.get_cookie("locale") == "ru"
    assert await live_redis.get(LOCALE.cache_key(user_id)) is not None


@pytest.mark.asyncio
async def test_upsert_keeps_one_row(live_manager, live_pg, user_id):
    for value in ("light", "dark", "dark"):
        await live_manager.theme.set(RequestContext(), value, user_id)
    await live_manager.locale.set(RequestContext(), "ru", user_id)

    count = await live_pg.fetchval(
        "SELECT COUNT(*) FROM user_preferences WHERE user_id = $1", user_id
    )
    assert count == 1


@pytest.mark.asyncio
async def test_initialize_then_clear(live_manager, live_pg, user_id):
    first = await live_manager.theme.initialize(RequestContext(), user_id, "light")
    second = await live_manager.theme.initialize(RequestContext(), user_id, "dark")
    assert first.value == "light"
    assert second.value == "light"

    await live_manager.theme.clear(RequestContext(), user_id)
    assert await PreferenceRepository(live_pg).fetch_record(user_id) is None
    assert await live_manager.theme.get(RequestContext(), user_id) == "system"


@pytest.mark.asyncio
async def test_batch_update_lands_in_one_row(live_manager, live_pg, user_id):
    results = await live_manager.set_many(
        RequestContext(), {"date_format": "MM/DD/YYYY", "graph_format": "PDF"}, user_id
    )
    assert all(r.success for r in results.values())

    record = await PreferenceRepository(live_pg).fetch_record(user_id)
    assert record.date_format == "MM/DD/YYYY"
    assert record.graph_default_format == "PDF"
