"""
Repository for the ``permission_grants`` table (overlay permissions that a
guild assigns to roles independently of Discord's own permission bits).
"""

from __future__ import annotations

from typing import Dict, Iterable, Set

import aiosqlite


class PermissionGrantRepository:
    """CRUD for overlay permission grants."""

    async def grant(
        self,
        conn: aiosqlite.Connection,
        guild_id: int,
        role_id: int,
        permission: str,
        granted_by: int,
    ) -> bool:
        """Grant ``permission`` to a role. Returns False if it was already granted."""
        cursor = await conn.execute(
            "INSERT OR IGNORE INTO permission_grants (guild_id, role_id, permission, granted_by) "
            "VALUES (?, ?, ?, ?)",
            (guild_id, role_id, permission, granted_by),
        )
        return cursor.rowcount > 0

    async def revoke(
        self, conn: aiosqlite.Connection, guild_id: int, role_id: int, permission: str
    ) -> bool:
        """Revoke a grant. Returns False if the role did not hold it."""
        cursor = await conn.execute(
            "DELETE FROM permission_grants WHERE guild_id = ? AND role_id = ? AND permission = ?",
            (guild_id, role_id, permission),
        )
        return cursor.rowcount > 0

    async def has_any(
        self, conn: aiosqlite.Connection, guild_id: int, role_ids: Iterable[int], permission: str
    ) -> bool:
        """True if any of ``role_ids`` holds ``permission`` (or the overlay ``administrator``)."""
        role_ids = list(role_ids)
        if not role_ids:
            return False

        placeholders = ",".join("?" * len(role_ids))
        async with conn.execute(
            f"SELECT 1 FROM permission_grants WHERE guild_id = ? AND role_id IN ({placeholders}) "
            "AND permission IN (?, 'administrator') LIMIT 1",
            (guild_id, *role_ids, permission),
        ) as cursor:
            return await cursor.fetchone() is not None

    async def get_for_guild(self, conn: aiosqlite.Connection, guild_id: int) -> Dict[int, Set[str]]:
        """Return ``{role_id: {permission, ...}}`` for one guild."""
        async with conn.execute(
            "SELECT role_id, permission FROM permission_grants WHERE guild_id = ? ORDER BY role_id",
            (guild_id,),
        ) as cursor:
            rows = await cursor.fetchall()

        result: Dict[int, Set[str]] = {}
        for role_id, permission in rows:
            result.setdefault(role_id, set()).add(permission)
        return result

