"""
SanctionEngine - the entry point for issuing, lifting and expiring sanctions.

All collaborators are passed in at construction time. The engine builds the
guard, applier, reverser, audit sink and one reconciliation scheduler per
sanction kind from them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from warden.configuration.app_configuration import AppConfig
from warden.datatypes.sanction_datatypes import (
    ReversalReport,
    SanctionKind,
    SanctionRecord,
    SanctionResult,
)
from warden.platform.interfaces import AuthorizationProvider, CaseLedger, PlatformClient
from warden.sanctions.applier import SanctionApplier
from warden.sanctions.audit_sink import AuditSink
from warden.sanctions.errors import SanctionNotFound
from warden.sanctions.guard import SanctionGuard
from warden.sanctions.provisioning import GuildProvisioner, ProvisionReport
from warden.sanctions.reversal import SanctionReverser
from warden.sanctions.scheduler import ReconciliationScheduler
from warden.services.sanction_store import SanctionStore
from warden.util.logger import get_logger
from warden.util.timestamps import utcnow

logger = get_logger("sanction_engine")


class SanctionEngine:
    """Facade over the sanction lifecycle components."""

    def __init__(
        self,
        platform: PlatformClient,
        authorization: AuthorizationProvider,
        store: SanctionStore,
        ledger: CaseLedger,
        config: AppConfig,
        clock=utcnow,
    ) -> None:
        self.platform = platform
        self.store = store
        self.ledger = ledger
        self.config = config
        self.clock = clock

        self.sink = AuditSink(platform, config.log_channel_name)
        self.guard = SanctionGuard(store, platform, authorization, config.duration_bounds)
        self.applier = SanctionApplier(
            platform,
            store,
            ledger,
            self.sink,
            role_name_for=config.role_name,
            retry_attempts=config.persistence_retry_attempts,
            retry_delay=config.persistence_retry_delay,
            clock=clock,
        )
        self.reverser = SanctionReverser(platform, store, ledger, self.sink, config.role_name)
        self.provisioner = GuildProvisioner(platform)
        self.schedulers: Dict[SanctionKind, ReconciliationScheduler] = {
            kind: ReconciliationScheduler(
                kind, store, self.reverser, interval=config.reconciliation_interval, clock=clock
            )
            for kind in SanctionKind
        }

    async def issue_sanction(
        self,
        kind: SanctionKind,
        guild_id: int,
        executor_id: int,
        target_id: int,
        duration_token: str,
        reason: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> SanctionResult:
        """
        Authorize and apply a temporary sanction.

        Raises:
            SanctionError: Any subclass; its ``message`` is meant for the requester.
        """
        reason = (reason or "").strip() or self.config.default_reason
        request = await self.guard.authorize(
            kind, guild_id, executor_id, target_id, duration_token, reason, extra
        )
        return await self.applier.apply(request)

    async def lift_sanction(
        self,
        guild_id: int,
        user_id: int,
        kind: SanctionKind,
        executor_id: int,
        reason: Optional[str] = None,
    ) -> ReversalReport:
        """Lift an active sanction before it expires.

        Raises:
            InsufficientPermission: The executor may not lift this kind.
            SanctionNotFound: The user has no active sanction of this kind.
        """
        await self.guard.authorize_lift(kind, guild_id, executor_id)
        record = await self.store.find_active(guild_id, user_id, kind)
        if record is None:
            raise SanctionNotFound(f"This user has no active {kind.label}.")
        reason = (reason or "").strip() or self.config.default_reason
        return await self.reverser.reverse(
            record, automatic=False, actor_id=executor_id, reason=reason
        )

    async def forget_sanction(self, guild_id: int, user_id: int, kind: SanctionKind) -> bool:
        """Drop a record without touching the platform."""
        removed = await self.store.remove(guild_id, user_id, kind)
        if removed:
            logger.info(
                "[SANCTION ENGINE] Forgot %s for %s in guild %s (lifted outside the bot)",
                kind, user_id, guild_id,
            )
        return removed

    async def list_active(
        self, guild_id: int, kind: Optional[SanctionKind] = None
    ) -> List[SanctionRecord]:
        return await self.store.list_for_guild(guild_id, kind)

    async def provision_guild(self, guild_id: int) -> ProvisionReport:
        """Create any sanction role or moderation channel the guild is missing."""
        role_names = [self.config.role_name(kind) for kind in SanctionKind if kind.is_role_based]
        channel_names = [self.config.log_channel_name, self.config.jail_channel_name]
        return await self.provisioner.ensure_resources(guild_id, role_names, channel_names)

    def start(self, interval: Optional[float] = None) -> None:
        for scheduler in self.schedulers.values():
            scheduler.start(interval)
        logger.info("[SANCTION ENGINE] Reconciliation started for %d kinds", len(self.schedulers))

    def stop(self) -> None:
        for scheduler in self.schedulers.values():
            scheduler.stop()

    async def shutdown(self) -> None:
        for scheduler in self.schedulers.values():
            await scheduler.shutdown()

    async def run_pass(self) -> List[ReversalReport]:
        """Run one reconciliation pass for every kind immediately."""
        reports: List[ReversalReport] = []
        for scheduler in self.schedulers.values():
            reports.extend(await scheduler.run_pass())
        return reports

    def status(self) -> Dict[str, Dict[str, Any]]:
        return {str(kind): scheduler.status() for kind, scheduler in self.schedulers.items()}
