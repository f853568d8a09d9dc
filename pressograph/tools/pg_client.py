"""PostgreSQL client for the Tier 3 system of record.

Database:  pressograph
Host:      localhost:5432
Connection string: postgresql://localhost:5432/pressograph
                   or set POSTGRES_URL in .env

Schema (tools/schema.sql) is applied idempotently on first connect:

    user_preferences — one row per user, durable preference values

Failure model:
    - connect() returns False and logs when Postgres is unreachable; the
      next query retries the connection lazily.
    - Query methods raise TierUnavailableError on any failure. Callers in the
      sync layer decide whether that means "tier absent" or partial failure.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from pressograph.errors import TierUnavailableError

logger = structlog.get_logger().bind(component="pg_client")

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class PgClient:
    """Async PostgreSQL client using an asyncpg pool.

    Usage:
        pg = PgClient()
        await pg.connect()   # creates pool + applies schema
        row = await pg.fetchrow("SELECT ...", arg1)
        await pg.close()
    """

    def __init__(self, dsn: str | None = None, command_timeout: float = 10) -> None:
        if dsn is None:
            from pressograph.config import settings
            dsn = settings.postgres_url
        self.dsn = dsn
        self.command_timeout = command_timeout
        self._pool = None
        self.available = False   # True once pool is live

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def connect(self) -> bool:
        """Create connection pool and ensure schema exists.

        Returns True if connected, False if Postgres is unavailable.
        Safe to call multiple times (idempotent).
        """
        if self._pool is not None:
            return self.available

        try:
            import asyncpg
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=1,
                max_size=10,
                command_timeout=self.command_timeout,
            )
            self.available = True
            logger.info("pg_connected", dsn=self.dsn)
        except Exception as exc:
            logger.warning(
                "pg_unavailable",
                error=str(exc),
                hint="Preferences fall back to cookie + cache until Postgres is reachable.",
            )
            self._pool = None
            self.available = False
            return False

        await self._ensure_schema()
        return True

    async def close(self) -> None:
        """Gracefully close the connection pool."""
        if self._pool:
            try:
                await self._pool.close()
            except Exception as exc:
                logger.warning("pg_close_error", error=str(exc))
            self._pool = None
            self.available = False

    async def _require_pool(self):
        if self._pool is None and not await self.connect():
            raise TierUnavailableError("database", "no connection pool")
        return self._pool

    # ── Core query methods ─────────────────────────────────────────────────

    async def _run(self, method: str, query: str, *args: object):
        """Call ``conn.<method>`` on a pooled connection; any failure is a tier outage."""
        pool = await self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await getattr(conn, method)(query, *args)
        except Exception as exc:
            logger.warning(f"pg_{method}_error", error=str(exc), query=query[:80])
            raise TierUnavailableError("database", str(exc)) from exc

    async def execute(self, query: str, *args: object) -> str:
        """Run a DML query (INSERT / UPDATE / DELETE). Returns the status tag."""
        return await self._run("execute", query, *args)

    async def fetchrow(self, query: str, *args: object) -> dict | None:
        row = await self._run("fetchrow", query, *args)
        return dict(row) if row else None

    async def fetchval(self, query: str, *args: object) -> object:
        return await self._run("fetchval", query, *args)

    async def ping(self) -> bool:
        """True if Postgres answers SELECT 1. Never raises."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except TierUnavailableError:
            return False

    # ── Schema management ──────────────────────────────────────────────────

    async def _ensure_schema(self) -> None:
        """Apply schema.sql; a failure leaves the pool usable for existing tables."""
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(_SCHEMA_PATH.read_text(encoding="utf-8"))
            logger.info("pg_schema_ready", table="user_preferences")
        except Exception as exc:
            logger.warning("pg_schema_error", error=str(exc))
