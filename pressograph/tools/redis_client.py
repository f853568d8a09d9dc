"""Redis client for the Tier 2 preference cache.

Two backends:
    1. Real Redis / Valkey via redis.asyncio (any redis:// or rediss:// URL)
    2. In-process dict with manual TTL (url "memory://"), for single-process
       development and tests

Unlike a best-effort cache, failures here are not hidden: connection and
command errors raise TierUnavailableError so the sync layer can log them
and decide between "tier absent" (reads) and partial failure (writes).
"""

from __future__ import annotations

import asyncio
import time

import structlog

from pressograph.errors import TierUnavailableError

logger = structlog.get_logger().bind(component="redis_client")

# TTL default: 1 hour
DEFAULT_TTL = 3600

MEMORY_URL = "memory://"


class RedisClient:
    """Async Redis client with an optional in-process dict backend.

    Every key passes through the deployment prefix, so callers work with
    logical keys ("theme:user-42") and Redis stores "pressograph:theme:user-42".
    """

    def __init__(self, url: str | None = None, key_prefix: str | None = None) -> None:
        from pressograph.config import settings
        self.url = url or settings.redis_url
        self.key_prefix = settings.cache_key_prefix if key_prefix is None else key_prefix
        self._redis = None          # redis.asyncio client (lazy)
        self._fallback: dict[str, tuple[str, float]] = {}  # key → (value, expire_at)
        self._use_fallback = self.url.startswith(MEMORY_URL)
        self._connect_lock = asyncio.Lock()

    def _k(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def _get_redis(self):
        """Lazy connect to Redis. Returns None in memory mode.

        Concurrent first calls share one connect attempt; only one client
        (and connection pool) is ever created per RedisClient.
        """
        if self._use_fallback:
            return None
        if self._redis is not None:
            return self._redis
        async with self._connect_lock:
            if self._redis is not None:
                return self._redis
            import redis.asyncio as aioredis
            client = aioredis.from_url(self.url, decode_responses=True)
            try:
                await client.ping()
            except Exception as e:
                logger.warning("redis_unavailable", url=self.url, error=str(e))
                await _close_quietly(client)
                raise TierUnavailableError("cache", str(e)) from e
            self._redis = client
        logger.info("redis_connected", url=self.url)
        return client

    async def _reset(self) -> None:
        """Drop a broken connection so the next call reconnects."""
        if self._redis is not None:
            client, self._redis = self._redis, None
            await _close_quietly(client)

    async def get(self, key: str) -> str | None:
        """Retrieve value by key. Returns None if missing or expired."""
        r = await self._get_redis()
        if r is not None:
            try:
                return await r.get(self._k(key))
            except Exception as e:
                logger.warning("redis_get_error", key=key, error=str(e))
                await self._reset()
                raise TierUnavailableError("cache", str(e)) from e

        entry = self._fallback.get(self._k(key))
        if entry is None:
            return None
        value, expire_at = entry
        if expire_at and time.time() > expire_at:
            del self._fallback[self._k(key)]
            return None
        return value

    async def set(self, key: str, value: str, ttl: int = DEFAULT_TTL) -> None:
        """Store key→value with optional TTL (seconds). ttl=0 means no expiry."""
        r = await self._get_redis()
        if r is not None:
            try:
                if ttl:
                    await r.setex(self._k(key), ttl, value)
                else:
                    await r.set(self._k(key), value)
                return
            except Exception as e:
                logger.warning("redis_set_error", key=key, error=str(e))
                await self._reset()
                raise TierUnavailableError("cache", str(e)) from e

        expire_at = time.time() + ttl if ttl else 0.0
        self._fallback[self._k(key)] = (value, expire_at)

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if something was removed."""
        r = await self._get_redis()
        if r is not None:
            try:
                return bool(await r.delete(self._k(key)))
            except Exception as e:
                logger.warning("redis_delete_error", key=key, error=str(e))
                await self._reset()
                raise TierUnavailableError("cache", str(e)) from e
        return self._fallback.pop(self._k(key), None) is not None

    async def ttl(self, key: str) -> int | None:
        """Remaining TTL in seconds; None if the key is missing or never expires."""
        r = await self._get_redis()
        if r is not None:
            try:
                remaining = await r.ttl(self._k(key))
            except Exception as e:
                logger.warning("redis_ttl_error", key=key, error=str(e))
                await self._reset()
                raise TierUnavailableError("cache", str(e)) from e
            return remaining if remaining >= 0 else None

        entry = self._fallback.get(self._k(key))
        if entry is None or not entry[1]:
            return None
        remaining = int(entry[1] - time.time())
        return remaining if remaining > 0 else None

    async def ping(self) -> bool:
        """True if the backend answers. Never raises."""
        try:
            r = await self._get_redis()
            if r is not None:
                await r.ping()
            return True
        except Exception as e:
            logger.debug("redis_ping_failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None


async def _close_quietly(client) -> None:
    try:
        await client.aclose()
    except Exception as e:
        logger.debug("redis_close_error", error=str(e))
