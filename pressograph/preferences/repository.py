"""PreferenceRepository — Tier 3 reads and upserts over PgClient.

One user_preferences row per user holds every preference kind in its own
column. Writes are upserts keyed on user_id, so concurrent writers never
create a second row; the last UPDATE wins per column.

Column names come from the fixed PreferenceKind registry, never from
request input, which is what makes interpolating them into SQL safe.
"""

from __future__ import annotations

import structlog

from pressograph.models.schemas import PreferenceRecord
from pressograph.preferences.kinds import KINDS, PreferenceKind
from pressograph.tools.pg_client import PgClient

logger = structlog.get_logger().bind(component="preferences.repository")


class PreferenceRepository:
    """Durable per-user preference record."""

    def __init__(self, pg: PgClient | None = None) -> None:
        self._pg = pg or PgClient()

    async def fetch_record(self, user_id: str) -> PreferenceRecord | None:
        row = await self._pg.fetchrow(
            """
            SELECT user_id, theme_preference, language_preference, date_format,
                   time_format, graph_default_format, created_at, updated_at
            FROM user_preferences
            WHERE user_id = $1
            """,
            user_id,
        )
        return PreferenceRecord(**row) if row else None

    async def fetch_value(self, user_id: str, kind: PreferenceKind) -> object | None:
        """Stored value for one kind (unvalidated), or None."""
        return await self._pg.fetchval(
            f"SELECT {kind.column} FROM user_preferences WHERE user_id = $1",
            user_id,
        )

    async def upsert_value(self, user_id: str, kind: PreferenceKind, value: str) -> None:
        """Insert the row on first write, update the column and timestamp thereafter."""
        await self._pg.execute(
            f"""
            INSERT INTO user_preferences (user_id, {kind.column}, updated_at)
            VALUES ($1, $2, NOW())
            ON CONFLICT (user_id) DO UPDATE
                SET {kind.column} = EXCLUDED.{kind.column},
                    updated_at = NOW()
            """,
            user_id,
            value,
        )
        logger.info("preference_persisted", user_id=user_id, kind=kind.name, value=value)

    async def insert_default(self, user_id: str, kind: PreferenceKind, value: str) -> bool:
        """Set the column only if it is still empty. Returns True if it was written."""
        status = await self._pg.execute(
            f"""
            INSERT INTO user_preferences (user_id, {kind.column})
            VALUES ($1, $2)
            ON CONFLICT (user_id) DO UPDATE
                SET {kind.column} = EXCLUDED.{kind.column},
                    updated_at = NOW()
                WHERE user_preferences.{kind.column} IS NULL
            """,
            user_id,
            value,
        )
        return _affected_rows(status) > 0

    async def clear_value(self, user_id: str, kind: PreferenceKind) -> None:
        """Null one column; delete the row once no preference is left in it."""
        await self._pg.execute(
            f"""
            UPDATE user_preferences
            SET {kind.column} = NULL, updated_at = NOW()
            WHERE user_id = $1
            """,
            user_id,
        )
        empty = " AND ".join(f"{k.column} IS NULL" for k in KINDS.values())
        await self._pg.execute(
            f"DELETE FROM user_preferences WHERE user_id = $1 AND {empty}",
            user_id,
        )
        logger.info("preference_record_cleared", user_id=user_id, kind=kind.name)


def _affected_rows(status: str | None) -> int:
    """Row count from an asyncpg status tag such as 'INSERT 0 1' or 'UPDATE 2'."""
    if not status:
        return 0
    try:
        return int(status.rsplit(" ", 1)[-1])
    except ValueError:
        return 0
