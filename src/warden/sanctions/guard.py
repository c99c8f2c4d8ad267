"""
Authorization guard for new sanctions.

Checks run in a fixed order and stop at the first failure, all before any
side effect: self-target, duration syntax and bounds, existing sanction,
then permissions. Which permission system granted access decides which
hierarchy rule applies:

- native Discord permission: role positions are compared unless the
  executor is an administrator; a target who is not in the guild skips the
  comparison;
- overlay grant: the overlay's own ``can_act_on`` verdict is final.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from warden.datatypes.platform_datatypes import MemberInfo
from warden.datatypes.sanction_datatypes import PermissionSource, SanctionKind, SanctionRequest
from warden.platform.interfaces import AuthorizationProvider, PlatformClient
from warden.sanctions.duration import DurationBounds, parse_duration
from warden.sanctions.errors import (
    AlreadySanctioned,
    HierarchyViolation,
    InsufficientPermission,
    SelfTarget,
)
from warden.services.sanction_store import SanctionStore
from warden.util.logger import get_logger
from warden.util.timestamps import discord_timestamp

logger = get_logger("sanction_guard")

NATIVE_PERMISSIONS = {
    SanctionKind.BAN: ("ban_members",),
    SanctionKind.MUTE: ("manage_messages", "moderate_members"),
    SanctionKind.IMAGE_MUTE: ("manage_messages", "moderate_members"),
    SanctionKind.REACTION_MUTE: ("manage_messages", "moderate_members"),
    SanctionKind.JAIL: ("manage_messages", "moderate_members"),
}

OVERLAY_PERMISSIONS = {
    SanctionKind.BAN: "ban_members",
    SanctionKind.MUTE: "manage_messages",
    SanctionKind.IMAGE_MUTE: "manage_messages",
    SanctionKind.REACTION_MUTE: "manage_messages",
    SanctionKind.JAIL: "manage_messages",
}


class SanctionGuard:
    """Turns a raw command request into an authorized :class:`SanctionRequest`."""

    def __init__(
        self,
        store: SanctionStore,
        platform: PlatformClient,
        authorization: AuthorizationProvider,
        bounds_for: Callable[[SanctionKind], DurationBounds],
    ) -> None:
        self.store = store
        self.platform = platform
        self.authorization = authorization
        self.bounds_for = bounds_for

    async def authorize(
        self,
        kind: SanctionKind,
        guild_id: int,
        executor_id: int,
        target_id: int,
        duration_token: str,
        reason: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> SanctionRequest:
        """
        Validate and authorize a sanction request.

        Raises:
            SelfTarget, InvalidDuration, DurationOutOfRange: Validation failed.
            AlreadySanctioned: The target already has an active record of this kind.
            InsufficientPermission, HierarchyViolation: The executor may not do this.
        """
        if target_id == executor_id:
            raise SelfTarget()

        duration_ms = parse_duration(duration_token)
        self.bounds_for(kind).check(duration_ms, label=kind.label.capitalize() + "s")

        existing = await self.store.find_active(guild_id, target_id, kind)
        if existing is not None:
            raise AlreadySanctioned(
                f"This user already has an active {kind.label}. It will be lifted "
                f"{discord_timestamp(existing.expires_at, 'R')}.",
                expires_at=existing.expires_at,
            )

        executor = await self.platform.fetch_member(guild_id, executor_id)
        if executor is None:
            raise InsufficientPermission("You must be a member of this server to issue sanctions.")

        target = await self.platform.fetch_member(guild_id, target_id)
        source = await self._check_permissions(kind, executor, target)

        logger.debug(
            "[GUARD] %s authorized %s on %s in guild %s via %s permission",
            executor_id, kind, target_id, guild_id, source.value,
        )
        return SanctionRequest(
            kind=kind,
            guild_id=guild_id,
            executor=executor,
            target_id=target_id,
            target=target,
            duration_ms=duration_ms,
            duration_token=duration_token.strip(),
            reason=reason,
            source=source,
            extra=dict(extra or {}),
        )

    async def _check_permissions(
        self,
        kind: SanctionKind,
        executor: MemberInfo,
        target: Optional[MemberInfo],
    ) -> PermissionSource:
        if await self.authorization.has_native_capability(executor, NATIVE_PERMISSIONS[kind]):
            if (
                target is not None
                and not executor.is_administrator
                and target.top_role_position >= executor.top_role_position
            ):
                raise HierarchyViolation(
                    f"You cannot issue a {kind.label} to users with equal or higher roles."
                )
            return PermissionSource.NATIVE

        permission = OVERLAY_PERMISSIONS[kind]
        grant = await self.authorization.has_overlay_grant(executor, permission)
        if not grant.allowed:
            raise InsufficientPermission(f"You do not have permission to issue a {kind.label}.")

        if target is not None:
            verdict = await self.authorization.can_act_on(executor, target, permission)
            if not verdict.allowed:
                raise HierarchyViolation(verdict.reason or "You cannot sanction this user.")

        return PermissionSource.OVERLAY

    async def authorize_lift(
        self, kind: SanctionKind, guild_id: int, executor_id: int
    ) -> PermissionSource:
        """
        Check that ``executor_id`` may lift a sanction of ``kind`` early.

        Lifting needs the same permission as issuing; role hierarchy is not
        compared because lifting never harms the target.
        """
        executor = await self.platform.fetch_member(guild_id, executor_id)
        if executor is None:
            raise InsufficientPermission("You must be a member of this server to lift sanctions.")
        if await self.authorization.has_native_capability(executor, NATIVE_PERMISSIONS[kind]):
            return PermissionSource.NATIVE
        grant = await self.authorization.has_overlay_grant(executor, OVERLAY_PERMISSIONS[kind])
        if grant.allowed:
            return PermissionSource.OVERLAY
        raise InsufficientPermission(f"You do not have permission to lift a {kind.label}.")
