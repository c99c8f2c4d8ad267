"""
Sanction applier.

Performs the platform action for an authorized request, then persists the
record, appends a ledger case and notifies the audit sink. The platform
action happens first: a non-recoverable platform failure leaves no record
behind, and a recoverable one (the platform is already in the target state)
is persisted normally with a notice for the requester.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

from warden.datatypes.sanction_datatypes import (
    CaseEntry,
    SanctionKind,
    SanctionRecord,
    SanctionRequest,
    SanctionResult,
)
from warden.platform.interfaces import CaseLedger, PlatformClient
from warden.sanctions.audit_sink import AuditSink
from warden.sanctions.errors import (
    DuplicateSanction,
    PersistenceError,
    PlatformError,
    PlatformErrorCode,
)
from warden.services.sanction_store import SanctionStore
from warden.util.logger import get_logger
from warden.util.timestamps import utcnow

logger = get_logger("sanction_applier")

BAN_MESSAGE_DELETE_SECONDS = 7 * 24 * 60 * 60


class SanctionApplier:
    """Applies authorized sanctions and records them."""

    def __init__(
        self,
        platform: PlatformClient,
        store: SanctionStore,
        ledger: CaseLedger,
        sink: AuditSink,
        role_name_for: Callable[[SanctionKind], str],
        retry_attempts: int = 3,
        retry_delay: float = 0.5,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.platform = platform
        self.store = store
        self.ledger = ledger
        self.sink = sink
        self.role_name_for = role_name_for
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.clock = clock

    async def apply(self, request: SanctionRequest) -> SanctionResult:
        """
        Apply ``request`` on the platform and persist it.

        Raises:
            PlatformError: The platform rejected the action outright.
            DuplicateSanction: A concurrent request created the same record first.
            PersistenceError: The record could not be saved after retrying.
        """
        notice = None
        try:
            await self._apply_on_platform(request)
        except PlatformError as exc:
            if not exc.recoverable:
                logger.error(
                    "[SANCTION APPLIER] Failed to apply %s to %s in guild %s: %s",
                    request.kind, request.target_id, request.guild_id, exc.message,
                )
                raise
            notice = exc.message
            logger.info(
                "[SANCTION APPLIER] %s for %s in guild %s needed no platform change: %s",
                request.kind, request.target_id, request.guild_id, exc.message,
            )

        now = self.clock()
        record = SanctionRecord(
            guild_id=request.guild_id,
            user_id=request.target_id,
            kind=request.kind,
            executor_id=request.executor.id,
            reason=request.reason,
            duration_token=request.duration_token,
            expires_at=now + timedelta(milliseconds=request.duration_ms),
            created_at=now,
            extra=dict(request.extra),
        )
        await self._persist(record)

        case_id = await self._record_case(record)
        await self.sink.sanction_applied(record, case_id)
        if record.kind.is_role_based:
            guild = await self._guild_name(record.guild_id)
            await self.sink.notify_sanctioned(record, guild)

        logger.info(
            "[SANCTION APPLIER] %s issued %s (%s) to %s in guild %s, case %s",
            record.executor_id, record.kind, record.duration_token,
            record.user_id, record.guild_id, case_id,
        )
        return SanctionResult(
            record=record,
            duration_ms=request.duration_ms,
            case_id=case_id,
            notice=notice,
        )

    async def _apply_on_platform(self, request: SanctionRequest) -> None:
        if request.kind is SanctionKind.BAN:
            await self.platform.ban(
                request.guild_id,
                request.target_id,
                reason=(
                    f"Temporarily banned by {request.executor.display_name or request.executor.id} "
                    f"for {request.duration_token}: {request.reason}"
                ),
                delete_message_seconds=(
                    BAN_MESSAGE_DELETE_SECONDS if request.extra.get("delete_messages") else 0
                ),
            )
            return

        role_name = self.role_name_for(request.kind)
        role = await self.platform.find_role(request.guild_id, role_name)
        if role is None:
            raise PlatformError(
                PlatformErrorCode.UNKNOWN_ROLE,
                f"The `{role_name}` role does not exist. Please run `/setup` first.",
            )
        if request.target is None:
            raise PlatformError(PlatformErrorCode.UNKNOWN_MEMBER)
        if request.target.has_role(role.id):
            raise PlatformError(
                PlatformErrorCode.ALREADY_APPLIED,
                f"The user already has the `{role.name}` role.",
            )
        await self.platform.add_role(
            request.target,
            role,
            reason=f"{request.kind.label.capitalize()} for {request.duration_token}: {request.reason}",
        )

    async def _persist(self, record: SanctionRecord) -> None:
        for attempt in range(1, self.retry_attempts + 1):
            try:
                await self.store.create(record)
                return
            except DuplicateSanction:
                raise
            except PersistenceError as exc:
                logger.warning(
                    "[SANCTION APPLIER] Saving %s for %s failed (attempt %d/%d): %s",
                    record.kind, record.user_id, attempt, self.retry_attempts, exc.message,
                )
                if attempt == self.retry_attempts:
                    raise PersistenceError(
                        "The sanction was applied but could not be saved; it will not expire automatically."
                    ) from exc
                await asyncio.sleep(self.retry_delay)

    async def _record_case(self, record: SanctionRecord) -> Optional[int]:
        try:
            return await self.ledger.record_case(
                CaseEntry(
                    guild_id=record.guild_id,
                    action=record.kind.case_action,
                    target_id=record.user_id,
                    executor_id=record.executor_id,
                    reason=record.reason,
                    duration=record.duration_token,
                    expires_at=record.expires_at,
                    extra=dict(record.extra),
                )
            )
        except Exception:
            logger.exception(
                "[SANCTION APPLIER] Failed to record case for %s on %s in guild %s",
                record.kind, record.user_id, record.guild_id,
            )
            return None

    async def _guild_name(self, guild_id: int) -> str:
        try:
            guild = await self.platform.fetch_guild(guild_id)
        except PlatformError:
            guild = None
        return guild.name if guild else str(guild_id)
