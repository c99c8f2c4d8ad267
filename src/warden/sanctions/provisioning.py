"""
Guild provisioning for the role-based sanctions and the moderation log.

Mutes, image mutes, reaction mutes and jail are enforced by adding a named
role, and every lifecycle event is posted to a named log channel. Nothing
works in a guild until those exist, so ``GuildProvisioner`` creates whichever
of them are missing. Existing roles and channels are left untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

from warden.platform.interfaces import PlatformClient
from warden.sanctions.errors import PlatformError
from warden.util.logger import get_logger

logger = get_logger("provisioning")

SETUP_REASON = "Moderation system setup"


@dataclass(slots=True)
class ProvisionReport:
    created_roles: List[str] = field(default_factory=list)
    existing_roles: List[str] = field(default_factory=list)
    created_channels: List[str] = field(default_factory=list)
    existing_channels: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class GuildProvisioner:
    """Creates missing sanction roles and moderation channels in a guild."""

    def __init__(self, platform: PlatformClient) -> None:
        self.platform = platform

    async def ensure_resources(
        self, guild_id: int, role_names: Iterable[str], channel_names: Iterable[str]
    ) -> ProvisionReport:
        """
        Create every role and text channel in the lists that the guild lacks.

        A failure for one name is recorded in ``errors`` and the rest are
        still attempted.
        """
        report = ProvisionReport()

        for name in dict.fromkeys(role_names):
            try:
                if await self.platform.find_role(guild_id, name) is not None:
                    report.existing_roles.append(name)
                    continue
                await self.platform.create_role(guild_id, name, SETUP_REASON)
                report.created_roles.append(name)
                logger.info("[PROVISIONING] Created role %s in guild %s", name, guild_id)
            except PlatformError as exc:
                logger.warning("[PROVISIONING] Could not create role %s in guild %s: %s", name, guild_id, exc.message)
                report.errors.append(f"Role `{name}`: {exc.message}")

        for name in dict.fromkeys(channel_names):
            try:
                if await self.platform.find_channel(guild_id, name) is not None:
                    report.existing_channels.append(name)
                    continue
                await self.platform.create_channel(guild_id, name, SETUP_REASON)
                report.created_channels.append(name)
                logger.info("[PROVISIONING] Created channel #%s in guild %s", name, guild_id)
            except PlatformError as exc:
                logger.warning("[PROVISIONING] Could not create channel #%s in guild %s: %s", name, guild_id, exc.message)
                report.errors.append(f"Channel `#{name}`: {exc.message}")

        return report
