"""
Persistent storage for active sanctions.

Timestamps are INTEGER unix milliseconds so expiry comparisons are plain
integer comparisons done by SQLite.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

import aiosqlite

from warden.datatypes.sanction_datatypes import SanctionKind, SanctionRecord
from warden.util.timestamps import from_unix_ms, to_unix_ms

_COLUMNS = (
    "guild_id, user_id, kind, executor_id, reason, "
    "duration_token, expires_at, created_at, extra"
)


def _row_to_record(row: Any) -> SanctionRecord:
    return SanctionRecord(
        guild_id=row[0],
        user_id=row[1],
        kind=SanctionKind(row[2]),
        executor_id=row[3],
        reason=row[4],
        duration_token=row[5],
        expires_at=from_unix_ms(row[6]),
        created_at=from_unix_ms(row[7]),
        extra=json.loads(row[8] or "{}"),
    )


class SanctionRepository:
    """CRUD for the ``active_sanctions`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(conn: aiosqlite.Connection, record: SanctionRecord) -> None:
        """Insert a row. Raises ``sqlite3.IntegrityError`` if the key already exists."""
        await conn.execute(
            f"INSERT INTO active_sanctions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.guild_id,
                record.user_id,
                record.kind.value,
                record.executor_id,
                record.reason,
                record.duration_token,
                to_unix_ms(record.expires_at),
                to_unix_ms(record.created_at),
                json.dumps(record.extra),
            ),
        )

    @staticmethod
    async def delete(
        conn: aiosqlite.Connection,
        guild_id: int,
        user_id: int,
        kind: SanctionKind,
    ) -> bool:
        """Remove a row. Returns True if a row was deleted."""
        cursor = await conn.execute(
            "DELETE FROM active_sanctions WHERE guild_id = ? AND user_id = ? AND kind = ?",
            (guild_id, user_id, kind.value),
        )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(
        conn: aiosqlite.Connection,
        guild_id: int,
        user_id: int,
        kind: SanctionKind,
    ) -> Optional[SanctionRecord]:
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM active_sanctions "
            "WHERE guild_id = ? AND user_id = ? AND kind = ?",
            (guild_id, user_id, kind.value),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    @staticmethod
    async def get_expired(
        conn: aiosqlite.Connection,
        kind: SanctionKind,
        now_ms: int,
    ) -> List[SanctionRecord]:
        """Return every ``kind`` row with ``expires_at <= now_ms``, oldest first."""
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM active_sanctions "
            "WHERE kind = ? AND expires_at <= ? ORDER BY expires_at",
            (kind.value, now_ms),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    @staticmethod
    async def get_for_guild(
        conn: aiosqlite.Connection,
        guild_id: int,
        kind: Optional[SanctionKind] = None,
    ) -> List[SanctionRecord]:
        """Return a guild's rows ordered by expiry, optionally filtered by kind."""
        if kind is None:
            query = f"SELECT {_COLUMNS} FROM active_sanctions WHERE guild_id = ? ORDER BY expires_at"
            params: tuple = (guild_id,)
        else:
            query = (
                f"SELECT {_COLUMNS} FROM active_sanctions "
                "WHERE guild_id = ? AND kind = ? ORDER BY expires_at"
            )
            params = (guild_id, kind.value)

        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]
