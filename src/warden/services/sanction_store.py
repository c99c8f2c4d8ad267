"""
SanctionStore - the only owner of active sanction records.

Callers never see SQL or connections: the store opens a read or a serialised
write transaction per operation and translates storage failures into
``PersistenceError``. Uniqueness of (guild, user, kind) is enforced by the
table's primary key, so two concurrent ``create`` calls for the same key
produce exactly one row and one ``DuplicateSanction``.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from warden.database.db_connection import ConnectionManager
from warden.datatypes.sanction_datatypes import SanctionKind, SanctionRecord
from warden.repositories.sanction_repo import SanctionRepository
from warden.sanctions.errors import DuplicateSanction, PersistenceError
from warden.util.logger import get_logger
from warden.util.timestamps import discord_timestamp, to_unix_ms

logger = get_logger("sanction_store")


class SanctionStore:
    """Persisted record of each active sanction."""

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection
        self._repo = SanctionRepository()

    async def find_active(
        self, guild_id: int, user_id: int, kind: SanctionKind
    ) -> Optional[SanctionRecord]:
        try:
            async with self._connection.read() as conn:
                return await self._repo.get(conn, guild_id, user_id, kind)
        except (sqlite3.Error, RuntimeError) as exc:
            raise PersistenceError(f"Could not read sanction records: {exc}") from exc

    async def create(self, record: SanctionRecord) -> SanctionRecord:
        """
        Persist a new record.

        Raises:
            DuplicateSanction: A record for the same (guild, user, kind) exists.
            PersistenceError: The write failed for any other reason.
        """
        try:
            async with self._connection.transaction() as conn:
                await self._repo.insert(conn, record)
        except sqlite3.IntegrityError as exc:
            existing = await self.find_active(record.guild_id, record.user_id, record.kind)
            expires_at = existing.expires_at if existing else None
            until = f" until {discord_timestamp(expires_at)}" if expires_at else ""
            raise DuplicateSanction(
                f"This user already has an active {record.kind.label}{until}.",
                expires_at=expires_at,
            ) from exc
        except (sqlite3.Error, RuntimeError) as exc:
            raise PersistenceError(f"Could not save the sanction record: {exc}") from exc

        logger.debug(
            "[SANCTION STORE] Created %s for %s in guild %s (expires %s)",
            record.kind, record.user_id, record.guild_id, record.expires_at.isoformat(),
        )
        return record

    async def list_expired(self, kind: SanctionKind, now: datetime) -> List[SanctionRecord]:
        try:
            async with self._connection.read() as conn:
                return await self._repo.get_expired(conn, kind, to_unix_ms(now))
        except (sqlite3.Error, RuntimeError) as exc:
            raise PersistenceError(f"Could not read expired sanctions: {exc}") from exc

    async def list_for_guild(
        self, guild_id: int, kind: Optional[SanctionKind] = None
    ) -> List[SanctionRecord]:
        try:
            async with self._connection.read() as conn:
                return await self._repo.get_for_guild(conn, guild_id, kind)
        except (sqlite3.Error, RuntimeError) as exc:
            raise PersistenceError(f"Could not read sanctions for guild {guild_id}: {exc}") from exc

    async def remove(self, guild_id: int, user_id: int, kind: SanctionKind) -> bool:
        """Delete a record. Idempotent; returns True if a row was removed."""
        try:
            async with self._connection.transaction() as conn:
                removed = await self._repo.delete(conn, guild_id, user_id, kind)
        except (sqlite3.Error, RuntimeError) as exc:
            raise PersistenceError(f"Could not remove the sanction record: {exc}") from exc

        if removed:
            logger.debug("[SANCTION STORE] Removed %s for %s in guild %s", kind, user_id, guild_id)
        return removed
