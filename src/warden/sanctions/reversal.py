"""
Reversal of a single sanction record.

Used by the reconciliation scheduler for expired records and by the engine
for manual early lifts. Every attempt ends with the record removed from the
store; the returned :class:`ReversalOutcome` tells what actually happened.
"""

from __future__ import annotations

from typing import Callable, Optional

from warden.datatypes.sanction_datatypes import (
    CaseEntry,
    ReversalOutcome,
    ReversalReport,
    SanctionKind,
    SanctionRecord,
)
from warden.platform.interfaces import CaseLedger, PlatformClient
from warden.sanctions.audit_sink import AuditSink
from warden.sanctions.errors import PersistenceError, PlatformError, PlatformErrorCode
from warden.services.sanction_store import SanctionStore
from warden.util.logger import get_logger

logger = get_logger("sanction_reversal")


class SanctionReverser:
    """Lifts one sanction on the platform and clears its record."""

    def __init__(
        self,
        platform: PlatformClient,
        store: SanctionStore,
        ledger: CaseLedger,
        sink: AuditSink,
        role_name_for: Callable[[SanctionKind], str],
    ) -> None:
        self.platform = platform
        self.store = store
        self.ledger = ledger
        self.sink = sink
        self.role_name_for = role_name_for

    async def reverse(
        self,
        record: SanctionRecord,
        *,
        automatic: bool = True,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> ReversalReport:
        """
        Lift ``record`` and remove it from the store.

        Never raises for platform or ledger failures; those become the
        ``FAILED`` outcome or are logged. Store removal failures are logged
        and reported through ``ReversalReport.removed``.
        """
        guild = None
        try:
            guild = await self.platform.fetch_guild(record.guild_id)
            if guild is None:
                report = ReversalReport(record, ReversalOutcome.GUILD_MISSING)
            else:
                report = await self._lift(record, automatic, reason)
        except Exception as exc:
            logger.exception(
                "[REVERSAL] Unexpected error lifting %s for %s in guild %s",
                record.kind, record.user_id, record.guild_id,
            )
            report = ReversalReport(record, ReversalOutcome.FAILED, detail=str(exc))

        if report.outcome is ReversalOutcome.REVERSED:
            report.case_id = await self._record_case(record, automatic, actor_id, reason)
            await self.sink.notify_reversed(record, guild.name)

        if guild is not None:
            await self.sink.sanction_reversed(report, automatic)

        try:
            report.removed = await self.store.remove(record.guild_id, record.user_id, record.kind)
        except PersistenceError as exc:
            logger.error(
                "[REVERSAL] Could not remove %s record for %s in guild %s, will retry next pass: %s",
                record.kind, record.user_id, record.guild_id, exc.message,
            )

        log = logger.warning if report.outcome is ReversalOutcome.FAILED else logger.info
        log(
            "[REVERSAL] %s for %s in guild %s: %s%s",
            record.kind, record.user_id, record.guild_id, report.outcome,
            f" ({report.detail})" if report.detail else "",
        )
        return report

    async def _lift(
        self, record: SanctionRecord, automatic: bool, reason: Optional[str]
    ) -> ReversalReport:
        audit_reason = reason or (
            f"{record.kind.label.capitalize()} expired after {record.duration_token}"
            if automatic
            else f"{record.kind.label.capitalize()} lifted early"
        )
        try:
            if record.kind is SanctionKind.BAN:
                # A banned user is not a member, so there is no member lookup.
                await self.platform.unban(record.guild_id, record.user_id, reason=audit_reason)
                return ReversalReport(record, ReversalOutcome.REVERSED)

            member = await self.platform.fetch_member(record.guild_id, record.user_id)
            if member is None:
                return ReversalReport(record, ReversalOutcome.TARGET_MISSING)

            role_name = self.role_name_for(record.kind)
            role = await self.platform.find_role(record.guild_id, role_name)
            if role is None:
                return ReversalReport(
                    record, ReversalOutcome.ROLE_MISSING, detail=f"role `{role_name}` not found"
                )
            if not member.has_role(role.id):
                return ReversalReport(record, ReversalOutcome.ALREADY_REVERSED)

            await self.platform.remove_role(member, role, reason=audit_reason)
            return ReversalReport(record, ReversalOutcome.REVERSED)
        except PlatformError as exc:
            if exc.code is PlatformErrorCode.UNKNOWN_BAN:
                return ReversalReport(record, ReversalOutcome.ALREADY_REVERSED)
            if exc.code is PlatformErrorCode.UNKNOWN_MEMBER:
                return ReversalReport(record, ReversalOutcome.TARGET_MISSING)
            if exc.code is PlatformErrorCode.UNKNOWN_ROLE:
                return ReversalReport(record, ReversalOutcome.ROLE_MISSING, detail=exc.message)
            return ReversalReport(record, ReversalOutcome.FAILED, detail=exc.message)

    async def _record_case(
        self,
        record: SanctionRecord,
        automatic: bool,
        actor_id: Optional[int],
        reason: Optional[str],
    ) -> Optional[int]:
        try:
            return await self.ledger.record_case(
                CaseEntry(
                    guild_id=record.guild_id,
                    action=record.kind.reversal_action,
                    target_id=record.user_id,
                    executor_id=actor_id if actor_id is not None else record.executor_id,
                    reason=reason or f"Automatic reversal of {record.kind.label} ({record.duration_token})",
                    duration=record.duration_token,
                    extra={
                        "automatic": automatic,
                        "outcome": str(ReversalOutcome.REVERSED),
                        "original_reason": record.reason,
                    },
                )
            )
        except Exception:
            logger.exception(
                "[REVERSAL] Failed to record reversal case for %s in guild %s",
                record.user_id, record.guild_id,
            )
            return None
