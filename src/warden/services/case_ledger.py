"""SQLite-backed case ledger: every issued and lifted sanction becomes a numbered case."""

from __future__ import annotations

from typing import Callable, List, Optional
from datetime import datetime

from warden.database.db_connection import ConnectionManager
from warden.datatypes.sanction_datatypes import CaseEntry, ModerationCase
from warden.repositories.case_repo import ModerationCaseRepository
from warden.util.logger import get_logger
from warden.util.timestamps import to_unix_ms, utcnow

logger = get_logger("case_ledger")


class SqliteCaseLedger:
    """Stores moderation cases in the ``moderation_cases`` table."""

    def __init__(self, connection: ConnectionManager, clock: Callable[[], datetime] = utcnow) -> None:
        self._connection = connection
        self._clock = clock
        self._repo = ModerationCaseRepository()

    async def record_case(self, entry: CaseEntry) -> int:
        async with self._connection.transaction() as conn:
            case_id = await self._repo.insert(conn, entry, to_unix_ms(self._clock()))

        logger.info(
            "[CASE LEDGER] Case #%d (%s) recorded for %s in guild %s",
            case_id, entry.action, entry.target_id, entry.guild_id,
        )
        return case_id

    async def get_case(self, guild_id: int, case_id: int) -> Optional[ModerationCase]:
        async with self._connection.read() as conn:
            return await self._repo.get(conn, guild_id, case_id)

    async def get_user_cases(self, guild_id: int, target_id: int, limit: int = 10) -> List[ModerationCase]:
        async with self._connection.read() as conn:
            return await self._repo.get_for_user(conn, guild_id, target_id, limit)
