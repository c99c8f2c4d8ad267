"""
Repository for the ``moderation_cases`` table.

Case IDs are numbered per guild. ``insert`` must run inside a write
transaction so computing the next ID and inserting the row cannot interleave
with another writer.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

import aiosqlite

from warden.datatypes.sanction_datatypes import CaseEntry, ModerationCase
from warden.util.timestamps import from_unix_ms, to_unix_ms

_COLUMNS = (
    "case_id, guild_id, action, target_id, executor_id, reason, "
    "duration, expires_at, extra, created_at"
)


def _row_to_case(row: Any) -> ModerationCase:
    return ModerationCase(
        case_id=row[0],
        guild_id=row[1],
        action=row[2],
        target_id=row[3],
        executor_id=row[4],
        reason=row[5],
        duration=row[6],
        expires_at=from_unix_ms(row[7]) if row[7] is not None else None,
        extra=json.loads(row[8] or "{}"),
        created_at=from_unix_ms(row[9]),
    )


class ModerationCaseRepository:
    """CRUD for moderation cases."""

    async def insert(self, conn: aiosqlite.Connection, entry: CaseEntry, created_at_ms: int) -> int:
        """Insert ``entry`` with the next case ID for its guild and return that ID."""
        async with conn.execute(
            "SELECT COALESCE(MAX(case_id), 0) + 1 FROM moderation_cases WHERE guild_id = ?",
            (entry.guild_id,),
        ) as cursor:
            row = await cursor.fetchone()
        case_id = int(row[0])

        await conn.execute(
            f"INSERT INTO moderation_cases ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                case_id,
                entry.guild_id,
                entry.action,
                entry.target_id,
                entry.executor_id,
                entry.reason,
                entry.duration,
                to_unix_ms(entry.expires_at) if entry.expires_at else None,
                json.dumps(entry.extra),
                created_at_ms,
            ),
        )
        return case_id

    async def get(self, conn: aiosqlite.Connection, guild_id: int, case_id: int) -> Optional[ModerationCase]:
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM moderation_cases WHERE guild_id = ? AND case_id = ?",
            (guild_id, case_id),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_case(row) if row else None

    async def get_for_user(
        self, conn: aiosqlite.Connection, guild_id: int, target_id: int, limit: int = 10
    ) -> List[ModerationCase]:
        """Most recent cases against one user, newest first."""
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM moderation_cases WHERE guild_id = ? AND target_id = ? "
            "ORDER BY case_id DESC LIMIT ?",
            (guild_id, target_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_case(row) for row in rows]
