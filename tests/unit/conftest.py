"""Unit-test conftest — in-memory tiers, failure switches, and shared fixtures.

All fixtures here are available to every test under tests/unit/ without import.
Tier 2 runs on RedisClient's memory:// backend; Tier 3 is FakeRepository.
"""

from __future__ import annotations

import asyncio

import pytest

from pressograph.errors import TierUnavailableError
from pressograph.models.events import PreferenceEventBus
from pressograph.preferences.cache import PreferenceCache
from pressograph.preferences.context import RequestContext
from pressograph.preferences.kinds import LOCALE, THEME, PreferenceKind
from pressograph.preferences.signing import CookieSigner
from pressograph.preferences.sync import PreferenceManager, PreferenceSync
from pressograph.tools.redis_client import RedisClient

TEST_SECRET = "unit-test-secret"


# ─────────────────────────────────────────────────────────────────────────────
# FakeRepository — drop-in replacement for PreferenceRepository
# ─────────────────────────────────────────────────────────────────────────────

class FakeRepository:
    """In-memory user_preferences table.

    Args:
        raises:  If set, every method raises this exception.
        delay:   Seconds to sleep before each call (for timeout tests).
    """

    def __init__(self, *, raises: Exception | None = None, delay: float = 0.0) -> None:
        self.rows: dict[str, dict[str, str | None]] = {}
        self.raises = raises
        self.delay = delay
        # Call counters for assertion
        self.fetch_calls: int = 0
        self.upsert_calls: int = 0
        self.insert_calls: int = 0
        self.clear_calls: int = 0

    def seed(self, user_id: str, kind: PreferenceKind, value: str | None) -> None:
        self.rows.setdefault(user_id, {})[kind.column] = value

    def stored(self, user_id: str, kind: PreferenceKind) -> str | None:
        return self.rows.get(user_id, {}).get(kind.column)

    async def _io(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.raises:
            raise self.raises

    async def fetch_value(self, user_id: str, kind: PreferenceKind):
        self.fetch_calls += 1
        await self._io()
        return self.stored(user_id, kind)

    async def upsert_value(self, user_id: str, kind: PreferenceKind, value: str) -> None:
        self.upsert_calls += 1
        await self._io()
        self.seed(user_id, kind, value)

    async def insert_default(self, user_id: str, kind: PreferenceKind, value: str) -> bool:
        self.insert_calls += 1
        await self._io()
        if self.stored(user_id, kind) is not None:
            return False
        self.seed(user_id, kind, value)
        return True

    async def clear_value(self, user_id: str, kind: PreferenceKind) -> None:
        self.clear_calls += 1
        await self._io()
        row = self.rows.get(user_id)
        if row is None:
            return
        row[kind.column] = None
        if all(v is None for v in row.values()):
            del self.rows[user_id]


# ─────────────────────────────────────────────────────────────────────────────
# FlakyRedis — memory-mode RedisClient with per-operation failure switches
# ─────────────────────────────────────────────────────────────────────────────

class FlakyRedis(RedisClient):
    """RedisClient on the in-process backend that can be told to fail.

    Args:
        fail:   Operation names ("get", "set", "delete") that raise
                TierUnavailableError.
        fail_times: Fail only the first N calls of each failing op (None = always).
        delay:  Seconds to sleep before each call (for timeout tests).
    """

    def __init__(
        self,
        fail: set[str] | None = None,
        fail_times: int | None = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(url="memory://", key_prefix="pressograph:")
        self.fail = set(fail or ())
        self.fail_times = fail_times
        self.delay = delay
        self.calls: dict[str, int] = {"get": 0, "set": 0, "delete": 0}

    async def _io(self, op: str) -> None:
        self.calls[op] += 1
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if op in self.fail and (self.fail_times is None or self.calls[op] <= self.fail_times):
            raise TierUnavailableError("cache", f"{op} refused")

    async def get(self, key):
        await self._io("get")
        return await super().get(key)

    async def set(self, key, value, ttl=3600):
        await self._io("set")
        await super().set(key, value, ttl=ttl)

    async def delete(self, key):
        await self._io("delete")
        return await super().delete(key)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _make_ctx(**cookies: str) -> RequestContext:
    """RequestContext whose incoming cookies are validly signed."""
    signer = CookieSigner(TEST_SECRET)
    signed = {name: signer.sign(name, value) for name, value in cookies.items()}
    return RequestContext(signed, signer=signer, secure=False, request_id="req-test")


def _make_sync(
    kind: PreferenceKind = THEME,
    redis: RedisClient | None = None,
    repo: FakeRepository | None = None,
    bus: PreferenceEventBus | None = None,
    timeout: float = 0.5,
    retries: int = 1,
) -> PreferenceSync:
    return PreferenceSync(
        kind,
        PreferenceCache(redis or FlakyRedis(), ttl=3600),
        repo or FakeRepository(),
        bus=bus,
        timeout=timeout,
        retries=retries,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def redis() -> FlakyRedis:
    return FlakyRedis()


@pytest.fixture
def cache(redis) -> PreferenceCache:
    return PreferenceCache(redis, ttl=3600)


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def bus() -> PreferenceEventBus:
    return PreferenceEventBus()


@pytest.fixture
def ctx() -> RequestContext:
    return _make_ctx()


@pytest.fixture
def theme_sync(redis, repo, bus) -> PreferenceSync:
    return _make_sync(THEME, redis, repo, bus)


@pytest.fixture
def locale_sync(redis, repo, bus) -> PreferenceSync:
    return _make_sync(LOCALE, redis, repo, bus)


@pytest.fixture
def manager(cache, repo, bus) -> PreferenceManager:
    return PreferenceManager(cache, repo, bus=bus, timeout=0.5, retries=1)


# ── Factories (tests build their own failing tiers from these) ────────────────

@pytest.fixture
def make_ctx():
    return _make_ctx


@pytest.fixture
def make_sync():
    return _make_sync


@pytest.fixture
def make_repo():
    return FakeRepository


@pytest.fixture
def make_redis():
    return FlakyRedis
