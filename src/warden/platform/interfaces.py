"""
Narrow interfaces the sanction engine is written against.

The engine receives implementations of these protocols at construction time.
Production code wires in :class:`warden.platform.discord_platform.DiscordPlatform`,
:class:`warden.services.authorization.OverlayAuthorization` and
:class:`warden.services.case_ledger.SqliteCaseLedger`; tests pass fakes.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Union

import discord

from warden.datatypes.platform_datatypes import GuildInfo, MemberInfo, RoleInfo, Verdict
from warden.datatypes.sanction_datatypes import CaseEntry

MessageContent = Union[str, discord.Embed]


class PlatformClient(Protocol):
    """Moderated-platform operations.

    Lookups return ``None`` when the object does not exist. Mutations raise
    :class:`warden.sanctions.errors.PlatformError` with a code that lets the
    caller tell "already in target state" apart from a real failure.
    """

    async def fetch_guild(self, guild_id: int) -> Optional[GuildInfo]: ...

    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[MemberInfo]: ...

    async def ban(
        self, guild_id: int, user_id: int, *, reason: str, delete_message_seconds: int = 0
    ) -> None: ...

    async def unban(self, guild_id: int, user_id: int, reason: str) -> None: ...

    async def find_role(self, guild_id: int, name: str) -> Optional[RoleInfo]: ...

    async def add_role(self, member: MemberInfo, role: RoleInfo, reason: str) -> None: ...

    async def remove_role(self, member: MemberInfo, role: RoleInfo, reason: str) -> None: ...

    async def find_channel(self, guild_id: int, name: str) -> Optional[int]: ...

    async def create_role(self, guild_id: int, name: str, reason: str) -> RoleInfo: ...

    async def create_channel(self, guild_id: int, name: str, reason: str) -> int: ...

    async def send_direct_message(self, user_id: int, content: MessageContent) -> None: ...

    async def send_channel_message(self, channel_id: int, content: MessageContent) -> None: ...


class AuthorizationProvider(Protocol):
    """Native permission bits plus the custom overlay grant system."""

    async def has_native_capability(self, actor: MemberInfo, permissions: Iterable[str]) -> bool: ...

    async def has_overlay_grant(self, actor: MemberInfo, permission: str) -> Verdict: ...

    async def can_act_on(self, actor: MemberInfo, target: MemberInfo, permission: str) -> Verdict: ...


class CaseLedger(Protocol):
    async def record_case(self, entry: CaseEntry) -> int: ...
