"""Preference synchronization across cookie, cache and database.

READ (get):
    Waterfall: cookie → Redis → Postgres → default
    Cookie hit   → return immediately, nothing else consulted
    Redis hit    → refresh cookie, return
    Postgres hit → refresh cookie + Redis (new TTL), return
    All miss     → default, written nowhere

WRITE (set):
    Validate → cookie (synchronous) → preference_changed event
    → Postgres upsert ‖ Redis set (concurrent, best-effort)
    A tier failure yields WriteResult(success=False); the cookie stays.

Every cache/database call runs under a per-call timeout and is retried at
most `retries` times. Read-side failures are logged and treated as a miss.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from pressograph.errors import TierUnavailableError
from pressograph.models.events import PreferenceEvent, PreferenceEventBus
from pressograph.models.schemas import WriteResult
from pressograph.preferences.cache import PreferenceCache
from pressograph.preferences.context import RequestContext
from pressograph.preferences.kinds import KINDS, LOCALE, THEME, PreferenceKind, get_kind
from pressograph.preferences.repository import PreferenceRepository

logger = structlog.get_logger().bind(component="preferences.sync")

CACHE = "cache"
DATABASE = "database"

TierCall = tuple[str, Callable[..., Awaitable[Any]], tuple]


class PreferenceSync:
    """Three-tier read/write/clear for a single preference kind."""

    def __init__(
        self,
        kind: PreferenceKind,
        cache: PreferenceCache,
        repository: PreferenceRepository,
        bus: PreferenceEventBus | None = None,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> None:
        from pressograph.config import settings
        self.kind = kind
        self._cache = cache
        self._repository = repository
        self.bus = bus or PreferenceEventBus()
        self._timeout = settings.tier_timeout if timeout is None else timeout
        self._retries = settings.tier_retries if retries is None else retries

    # ── Public operations ─────────────────────────────────────────────────

    async def get(self, ctx: RequestContext, user_id: str | None = None) -> str:
        """Effective value for this request. Never raises for tier failures."""
        return await self._cascade(ctx, user_id, use_database=True)

    async def _cascade(
        self, ctx: RequestContext, user_id: str | None, use_database: bool
    ) -> str:
        kind = self.kind

        cookie = ctx.get_cookie(kind.cookie_name)
        if kind.is_valid(cookie):
            return cookie

        if not user_id:
            return kind.default

        # ── Tier 2: Redis ──────────────────────────────────────────────────
        cached = await self._read(CACHE, self._cache.get, kind, user_id, user_id=user_id)
        if kind.is_valid(cached):
            ctx.set_cookie(kind.cookie_name, cached)
            logger.debug("preference_cache_hit", kind=kind.name, user_id=user_id)
            self._emit(ctx, "preference_backfilled", cached, user_id, source=CACHE)
            return cached
        if cached is not None:
            logger.warning("preference_invalid_tier_value", tier=CACHE, kind=kind.name,
                           user_id=user_id, value=repr(cached))

        if not use_database:
            return kind.default

        # ── Tier 3: Postgres ───────────────────────────────────────────────
        stored = await self._read(DATABASE, self._repository.fetch_value, user_id, kind,
                                  user_id=user_id)
        if kind.is_valid(stored):
            ctx.set_cookie(kind.cookie_name, stored)
            await self._backfill_cache(user_id, stored)
            logger.debug("preference_database_hit", kind=kind.name, user_id=user_id)
            self._emit(ctx, "preference_backfilled", stored, user_id, source=DATABASE)
            return stored
        if stored is not None:
            logger.warning("preference_invalid_tier_value", tier=DATABASE, kind=kind.name,
                           user_id=user_id, value=repr(stored))

        return kind.default

    async def set(
        self, ctx: RequestContext, value: object, user_id: str | None = None
    ) -> WriteResult:
        """Write a new value. Raises InvalidPreferenceError before touching any tier."""
        kind = self.kind
        value = kind.validate(value)

        ctx.set_cookie(kind.cookie_name, value)
        self._emit(ctx, "preference_changed", value, user_id)

        if not user_id:
            return WriteResult(kind=kind.name, value=value)

        failures = await self._write("set", user_id, [
            (DATABASE, self._repository.upsert_value, (user_id, kind, value)),
            (CACHE, self._cache.set, (kind, user_id, value)),
        ])
        if not failures:
            logger.info("preference_set", kind=kind.name, user_id=user_id, value=value)
        return self._result(value, failures)

    async def clear(self, ctx: RequestContext, user_id: str | None = None) -> WriteResult:
        """Remove the value from every tier; the default applies afterwards."""
        kind = self.kind

        ctx.delete_cookie(kind.cookie_name)
        self._emit(ctx, "preference_cleared", kind.default, user_id)

        if not user_id:
            return WriteResult(kind=kind.name, value=kind.default)

        failures = await self._write("clear", user_id, [
            (CACHE, self._cache.delete, (kind, user_id)),
            (DATABASE, self._repository.clear_value, (user_id, kind)),
        ])
        logger.info("preference_cleared", kind=kind.name, user_id=user_id,
                    partial=bool(failures))
        return self._result(kind.default, failures)

    async def sync(self, ctx: RequestContext, user_id: str) -> str:
        """Make cookie and cache mirror the database (e.g. right after login).

        If the database is unreachable nothing is overwritten and cookie or
        cache answer instead; the database is not asked a second time.
        """
        kind = self.kind
        try:
            stored = await self._call_tier(DATABASE, self._repository.fetch_value, user_id, kind)
        except Exception as exc:
            self._log_tier_error("sync", DATABASE, user_id, exc)
            return await self._cascade(ctx, user_id, use_database=False)

        if kind.is_valid(stored):
            ctx.set_cookie(kind.cookie_name, stored)
            await self._backfill_cache(user_id, stored)
            self._emit(ctx, "preference_backfilled", stored, user_id, source=DATABASE)
            return stored

        # Nothing durable: drop faster copies so they cannot resurrect a stale value.
        ctx.delete_cookie(kind.cookie_name)
        try:
            await self._call_tier(CACHE, self._cache.delete, kind, user_id)
        except Exception as exc:
            self._log_tier_error("sync", CACHE, user_id, exc)
        return kind.default

    async def initialize(
        self, ctx: RequestContext, user_id: str, value: object | None = None
    ) -> WriteResult:
        """Seed a new user's record without overwriting an existing value."""
        kind = self.kind
        value = kind.validate(kind.default if value is None else value)

        try:
            written = await self._call_tier(
                DATABASE, self._repository.insert_default, user_id, kind, value
            )
        except Exception as exc:
            self._log_tier_error("initialize", DATABASE, user_id, exc)
            ctx.set_cookie(kind.cookie_name, value)
            return self._result(value, [(DATABASE, exc)])

        if not written:
            existing = await self.sync(ctx, user_id)
            return WriteResult(kind=kind.name, value=existing)

        ctx.set_cookie(kind.cookie_name, value)
        self._emit(ctx, "preference_changed", value, user_id)
        failures = await self._write("initialize", user_id, [
            (CACHE, self._cache.set, (kind, user_id, value)),
        ])
        return self._result(value, failures)

    # ── Tier plumbing ─────────────────────────────────────────────────────

    async def _call_tier(self, tier: str, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """Run one tier call with a timeout and at most `retries` extra attempts."""
        attempts = self._retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(fn(*args), timeout=self._timeout)
            except asyncio.TimeoutError:
                error = TierUnavailableError(tier, f"timed out after {self._timeout}s")
            except TierUnavailableError as exc:
                error = exc
            if attempt < attempts:
                logger.debug("preference_tier_retry", tier=tier, attempt=attempt, error=str(error))
        raise error

    async def _read(self, tier: str, fn, *args: Any, user_id: str) -> object | None:
        try:
            return await self._call_tier(tier, fn, *args)
        except Exception as exc:
            self._log_tier_error("get", tier, user_id, exc)
            return None

    async def _write(
        self, operation: str, user_id: str, calls: list[TierCall]
    ) -> list[tuple[str, BaseException]]:
        """Run tier calls concurrently; return (tier, error) for each that failed."""
        outcomes = await asyncio.gather(
            *(self._call_tier(tier, fn, *args) for tier, fn, args in calls),
            return_exceptions=True,
        )
        failures = []
        for (tier, _, _), outcome in zip(calls, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                self._log_tier_error(operation, tier, user_id, outcome)
                failures.append((tier, outcome))
        return failures

    async def _backfill_cache(self, user_id: str, value: str) -> None:
        try:
            await self._call_tier(CACHE, self._cache.set, self.kind, user_id, value)
        except Exception as exc:
            self._log_tier_error("backfill", CACHE, user_id, exc)

    def _result(self, value: str, failures: list[tuple[str, BaseException]]) -> WriteResult:
        if not failures:
            return WriteResult(kind=self.kind.name, value=value)
        return WriteResult(
            success=False,
            kind=self.kind.name,
            value=value,
            error="; ".join(f"{tier}: {exc}" for tier, exc in failures),
            failed_tiers=[tier for tier, _ in failures],
        )

    def _log_tier_error(self, operation: str, tier: str, user_id: str, exc: BaseException) -> None:
        logger.warning(
            "preference_tier_error",
            operation=operation,
            tier=tier,
            kind=self.kind.name,
            user_id=user_id,
            error=str(exc),
            error_type=type(exc).__name__,
        )

    def _emit(
        self,
        ctx: RequestContext,
        event_type: str,
        value: str,
        user_id: str | None,
        source: str = "",
    ) -> None:
        self.bus.emit(PreferenceEvent(
            correlation_id=ctx.request_id,
            event_type=event_type,
            kind=self.kind.name,
            value=value,
            user_id=user_id,
            source=source,
        ))


class PreferenceManager:
    """One PreferenceSync per registered kind, sharing cache, repository and bus."""

    def __init__(
        self,
        cache: PreferenceCache,
        repository: PreferenceRepository,
        bus: PreferenceEventBus | None = None,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> None:
        self.bus = bus or PreferenceEventBus()
        self._syncs = {
            name: PreferenceSync(kind, cache, repository, self.bus, timeout, retries)
            for name, kind in KINDS.items()
        }

    def for_kind(self, name: str) -> PreferenceSync:
        """Raises UnknownPreferenceKindError for unregistered names."""
        return self._syncs[get_kind(name).name]

    @property
    def theme(self) -> PreferenceSync:
        return self._syncs[THEME.name]

    @property
    def locale(self) -> PreferenceSync:
        return self._syncs[LOCALE.name]

    async def get_all(self, ctx: RequestContext, user_id: str | None = None) -> dict[str, str]:
        values = await asyncio.gather(*(s.get(ctx, user_id) for s in self._syncs.values()))
        return dict(zip(self._syncs.keys(), values))

    async def set_many(
        self, ctx: RequestContext, values: dict[str, object], user_id: str | None = None
    ) -> dict[str, WriteResult]:
        """Write several kinds in one call.

        Every field is validated before any tier is touched, so one unknown
        kind or bad value rejects the whole batch. A valid batch fans out to
        each kind's ``set`` concurrently.
        """
        checked = {}
        for name, value in values.items():
            kind = get_kind(name)
            checked[kind.name] = kind.validate(value)

        results = await asyncio.gather(
            *(self._syncs[name].set(ctx, value, user_id) for name, value in checked.items())
        )
        return dict(zip(checked.keys(), results))
