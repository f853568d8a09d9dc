"""Postgres schema migrations for the ``user_preferences`` table.

``pressograph db migrate`` (or a deploy hook) runs ``MigrationRunner.migrate``.
The DDL in ``schema.sql`` is idempotent and runs inside one transaction
together with the ``schema_migrations`` bookkeeping rows, so a failed run
leaves the database untouched and a repeated run is a no-op.

    runner = MigrationRunner()
    result = await runner.migrate()   # MigrationResult(applied, version, tables, error)
    status = await runner.status()    # MigrationStatus(applied/pending versions, row counts)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import structlog

logger = structlog.get_logger().bind(component="migrations")

# Add a version here when schema.sql gains statements
SCHEMA_VERSION = "0002"

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"

_CONNECT_TIMEOUT = 10.0

_TRACKING_DDL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version     TEXT        PRIMARY KEY,
        applied_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

_PUBLIC_TABLES = """
    SELECT table_name FROM information_schema.tables
    WHERE table_schema = 'public'
    ORDER BY table_name
"""


@dataclass
class MigrationResult:
    applied: bool
    version: str
    tables: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class MigrationStatus:
    applied_versions: list[str] = field(default_factory=list)
    pending_versions: list[str] = field(default_factory=list)
    table_counts: dict[str, int] = field(default_factory=dict)
    pg_available: bool = False


class MigrationRunner:
    """Applies ``schema.sql`` and records which versions a database has seen."""

    VERSIONS: list[str] = ["0001", SCHEMA_VERSION]

    def __init__(self, dsn: str | None = None) -> None:
        if dsn is None:
            from pressograph.config import settings
            dsn = settings.postgres_url
        self._dsn = dsn

    # ── Public API ────────────────────────────────────────────────────────

    async def migrate(self) -> MigrationResult:
        conn = await self._connect()
        if conn is None:
            return MigrationResult(applied=False, version="", error="Postgres unavailable")
        try:
            return await self._migrate(conn)
        finally:
            await conn.close()

    async def status(self) -> MigrationStatus:
        conn = await self._connect()
        if conn is None:
            return MigrationStatus(pg_available=False)
        try:
            applied = await self._applied_versions(conn)
            return MigrationStatus(
                applied_versions=applied,
                pending_versions=self._pending(applied),
                table_counts=await self._row_counts(conn),
                pg_available=True,
            )
        finally:
            await conn.close()

    # ── Internals ─────────────────────────────────────────────────────────

    async def _connect(self):
        import asyncpg

        try:
            return await asyncpg.connect(self._dsn, timeout=_CONNECT_TIMEOUT)
        except Exception as exc:
            logger.warning("migration_connect_failed", error=str(exc))
            return None

    def _pending(self, applied: list[str]) -> list[str]:
        return [v for v in self.VERSIONS if v not in applied]

    async def _migrate(self, conn) -> MigrationResult:
        await conn.execute(_TRACKING_DDL)
        rows = await conn.fetch("SELECT version FROM schema_migrations")
        pending = self._pending([r["version"] for r in rows])

        if not pending:
            logger.debug("migration_already_current", version=SCHEMA_VERSION)
            return MigrationResult(
                applied=False, version=self.VERSIONS[-1], tables=await self._tables(conn),
            )

        statements = _split_sql(_SCHEMA_PATH.read_text(encoding="utf-8"))
        try:
            async with conn.transaction():
                for stmt in statements:
                    await conn.execute(stmt)
                for version in pending:
                    await conn.execute(
                        "INSERT INTO schema_migrations (version) VALUES ($1) "
                        "ON CONFLICT DO NOTHING",
                        version,
                    )
        except Exception as exc:
            logger.error("migration_apply_failed", versions=pending, error=str(exc))
            return MigrationResult(applied=False, version="", error=str(exc))

        tables = await self._tables(conn)
        logger.info("migration_applied", versions=pending, tables=len(tables))
        return MigrationResult(applied=True, version=pending[-1], tables=tables)

    async def _applied_versions(self, conn) -> list[str]:
        tracked = await conn.fetchval(
            "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = 'schema_migrations')"
        )
        if not tracked:
            return []
        rows = await conn.fetch("SELECT version FROM schema_migrations ORDER BY applied_at")
        return [r["version"] for r in rows]

    async def _row_counts(self, conn) -> dict[str, int]:
        counts: dict[str, int] = {}
        for table in await self._tables(conn):
            try:
                counts[table] = int(await conn.fetchval(f'SELECT COUNT(*) FROM "{table}"'))
            except Exception as exc:
                logger.warning("migration_count_failed", table=table, error=str(exc))
                counts[table] = -1
        return counts

    @staticmethod
    async def _tables(conn) -> list[str]:
        return [r["table_name"] for r in await conn.fetch(_PUBLIC_TABLES)]


# ── SQL splitter ──────────────────────────────────────────────────────────────

_SQL_TOKEN = re.compile(
    r"""
      (?P<dollar>\$(?P<tag>[A-Za-z_]*)\$.*?\$(?P=tag)\$)
    | (?P<quoted>'(?:[^']|'')*')
    | (?P<comment>--[^\n]*|/\*.*?\*/)
    | (?P<end>;)
    """,
    re.VERBOSE | re.DOTALL,
)


def _split_sql(sql: str) -> list[str]:
    """Split a SQL script into statements.

    Comments are dropped. Semicolons inside string literals and dollar-quoted
    bodies do not end a statement. Terminated statements keep their ``;``.
    """
    statements: list[str] = []
    buf: list[str] = []
    pos = 0

    def flush(terminator: str) -> None:
        stmt = "".join(buf).strip()
        if stmt:
            statements.append(stmt + terminator)
        buf.clear()

    for match in _SQL_TOKEN.finditer(sql):
        buf.append(sql[pos:match.start()])
        pos = match.end()
        if match.lastgroup == "end":
            flush(";")
        elif match.lastgroup != "comment":
            buf.append(match.group(0))

    buf.append(sql[pos:])
    flush("")
    return statements
