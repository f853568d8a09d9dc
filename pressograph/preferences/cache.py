"""PreferenceCache — Tier 2 key policy and value envelope.

Key scheme:   {kind}:{user_id}          e.g. theme:user-42
Value:        {"value": "dark", "timestamp": 1761000000000, "ttl": 3600}
TTL:          settings.preference_cache_ttl (1 hour)

Entries written as a bare string (no JSON envelope) are still readable.
Errors from the Redis client propagate as TierUnavailableError.
"""

from __future__ import annotations

import json

import structlog

from pressograph.preferences.kinds import PreferenceKind
from pressograph.tools.redis_client import RedisClient
from pressograph.utils.clock import epoch_ms

logger = structlog.get_logger().bind(component="preferences.cache")


class PreferenceCache:
    """Namespaced get/set/delete of preference values in Redis."""

    def __init__(self, redis: RedisClient | None = None, ttl: int | None = None) -> None:
        from pressograph.config import settings
        self._redis = redis or RedisClient()
        self.ttl = settings.preference_cache_ttl if ttl is None else ttl

    async def get(self, kind: PreferenceKind, user_id: str) -> object | None:
        """Stored value (unvalidated), or None on a miss."""
        raw = await self._redis.get(kind.cache_key(user_id))
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return raw
        if isinstance(entry, dict):
            return entry.get("value")
        return raw

    async def set(self, kind: PreferenceKind, user_id: str, value: str) -> None:
        payload = json.dumps({"value": value, "timestamp": epoch_ms(), "ttl": self.ttl})
        await self._redis.set(kind.cache_key(user_id), payload, ttl=self.ttl)
        logger.debug("preference_cached", key=kind.cache_key(user_id), ttl=self.ttl)

    async def delete(self, kind: PreferenceKind, user_id: str) -> bool:
        return await self._redis.delete(kind.cache_key(user_id))
