"""
Authorization collaborator: Discord's native permission bits plus an overlay
of application-level grants stored per role.

The overlay lets a guild hand out moderation rights (e.g. ``ban_members``)
through the bot without granting the Discord permission itself. Because the
two systems rank members differently, the overlay decides on its own whether
a grant holder may act on a given target; the guard never compares across
the two.
"""

from __future__ import annotations

from typing import Dict, Iterable, Set

from warden.database.db_connection import ConnectionManager
from warden.datatypes.platform_datatypes import MemberInfo, Verdict
from warden.repositories.grant_repo import PermissionGrantRepository
from warden.util.logger import get_logger

logger = get_logger("authorization")

GRANTABLE_PERMISSIONS = (
    "ban_members",
    "kick_members",
    "timeout_members",
    "manage_messages",
    "manage_roles",
    "manage_channels",
    "manage_nicknames",
    "view_audit_log",
    "administrator",
)

# Overlay permission name -> Discord permission attributes that count as "real"
NATIVE_EQUIVALENTS = {
    "ban_members": ("ban_members",),
    "kick_members": ("kick_members",),
    "timeout_members": ("moderate_members",),
    "manage_messages": ("manage_messages",),
    "manage_roles": ("manage_roles",),
    "manage_channels": ("manage_channels",),
    "manage_nicknames": ("manage_nicknames",),
    "view_audit_log": ("view_audit_log",),
    "administrator": ("administrator",),
}


class OverlayAuthorization:
    """Implements :class:`warden.platform.interfaces.AuthorizationProvider`."""

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection
        self._repo = PermissionGrantRepository()

    # ------------------------------------------------------------------
    # AuthorizationProvider
    # ------------------------------------------------------------------

    async def has_native_capability(self, actor: MemberInfo, permissions: Iterable[str]) -> bool:
        """True if the actor holds administrator or any of ``permissions`` natively."""
        return actor.is_administrator or any(p in actor.permissions for p in permissions)

    async def has_overlay_grant(self, actor: MemberInfo, permission: str) -> Verdict:
        async with self._connection.read() as conn:
            granted = await self._repo.has_any(conn, actor.guild_id, actor.role_ids, permission)
        if granted:
            return Verdict(True, "Granted permission")
        return Verdict(False, "You do not have permission to perform this action")

    async def can_act_on(self, actor: MemberInfo, target: MemberInfo, permission: str) -> Verdict:
        """
        Overlay hierarchy: a grant holder may not act on members who hold the
        real permission (or administrator), nor on members whose top role is
        equal to or above their own.
        """
        if actor.id == target.id:
            return Verdict(False, "You cannot target yourself")

        native = NATIVE_EQUIVALENTS.get(permission, (permission,))
        if target.is_administrator or any(p in target.permissions for p in native):
            return Verdict(
                False,
                "Cannot target users with real permissions using granted permissions",
            )

        if target.top_role_position >= actor.top_role_position:
            return Verdict(False, "You cannot target users with equal or higher roles")

        return Verdict(True, "Action allowed")

    # ------------------------------------------------------------------
    # Grant management
    # ------------------------------------------------------------------

    async def grant(self, guild_id: int, role_id: int, permission: str, granted_by: int) -> bool:
        if permission not in GRANTABLE_PERMISSIONS:
            raise ValueError(f"Unknown permission: {permission}")
        async with self._connection.transaction() as conn:
            created = await self._repo.grant(conn, guild_id, role_id, permission, granted_by)
        if created:
            logger.info("[AUTHORIZATION] Granted %s to role %s in guild %s", permission, role_id, guild_id)
        return created

    async def revoke(self, guild_id: int, role_id: int, permission: str) -> bool:
        async with self._connection.transaction() as conn:
            removed = await self._repo.revoke(conn, guild_id, role_id, permission)
        if removed:
            logger.info("[AUTHORIZATION] Revoked %s from role %s in guild %s", permission, role_id, guild_id)
        return removed

    async def list_grants(self, guild_id: int) -> Dict[int, Set[str]]:
        async with self._connection.read() as conn:
            return await self._repo.get_for_guild(conn, guild_id)
