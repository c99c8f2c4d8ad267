"""
py-cord implementation of :class:`warden.platform.interfaces.PlatformClient`.

Every Discord call is bounded by ``call_timeout`` seconds and every
``discord.HTTPException`` is translated into a ``PlatformError`` carrying the
Discord JSON error code, so the engine never has to import discord errors.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Optional

import discord

from warden.datatypes.platform_datatypes import GuildInfo, MemberInfo, RoleInfo
from warden.platform.interfaces import MessageContent
from warden.sanctions.errors import PlatformError, PlatformErrorCode
from warden.util.logger import get_logger
from warden.util.text import AUDIT_REASON_LIMIT, clip

logger = get_logger("discord_platform")


def member_to_info(member: discord.Member) -> MemberInfo:
    """Snapshot a ``discord.Member`` into a :class:`MemberInfo`."""
    return MemberInfo(
        id=member.id,
        guild_id=member.guild.id,
        display_name=str(member),
        role_ids=frozenset(role.id for role in member.roles),
        top_role_position=member.top_role.position,
        permissions=frozenset(name for name, value in member.guild_permissions if value),
    )


def translate_http_error(exc: discord.HTTPException) -> PlatformError:
    code = PlatformErrorCode.from_code(getattr(exc, "code", 0) or 0)
    if code is PlatformErrorCode.UNKNOWN and isinstance(exc, discord.Forbidden):
        code = PlatformErrorCode.MISSING_PERMISSIONS
    return PlatformError(code, f"{PlatformError(code).message} ({exc.status}: {exc.text or 'no detail'})")


class DiscordPlatform:
    """Platform client backed by a running ``discord.Bot``."""

    def __init__(self, bot: discord.Bot, call_timeout: float = 10.0) -> None:
        self.bot = bot
        self.call_timeout = call_timeout

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.call_timeout)
        except asyncio.TimeoutError as exc:
            raise PlatformError(PlatformErrorCode.TIMEOUT) from exc
        except discord.HTTPException as exc:
            raise translate_http_error(exc) from exc

    async def _resolve_guild(self, guild_id: int) -> Optional[discord.Guild]:
        guild = self.bot.get_guild(guild_id)
        if guild is not None:
            return guild
        try:
            return await self._call(self.bot.fetch_guild(guild_id))
        except PlatformError as exc:
            if exc.code in (PlatformErrorCode.UNKNOWN_GUILD, PlatformErrorCode.MISSING_ACCESS):
                return None
            raise

    async def _resolve_member(self, guild: discord.Guild, user_id: int) -> Optional[discord.Member]:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await self._call(guild.fetch_member(user_id))
        except PlatformError as exc:
            if exc.code in (PlatformErrorCode.UNKNOWN_MEMBER, PlatformErrorCode.UNKNOWN_USER):
                return None
            raise

    async def _require_guild(self, guild_id: int) -> discord.Guild:
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            raise PlatformError(PlatformErrorCode.UNKNOWN_GUILD)
        return guild

    async def _require_member(self, member: MemberInfo) -> discord.Member:
        guild = await self._require_guild(member.guild_id)
        discord_member = await self._resolve_member(guild, member.id)
        if discord_member is None:
            raise PlatformError(PlatformErrorCode.UNKNOWN_MEMBER)
        return discord_member

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def fetch_guild(self, guild_id: int) -> Optional[GuildInfo]:
        guild = await self._resolve_guild(guild_id)
        return GuildInfo(id=guild.id, name=guild.name) if guild else None

    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[MemberInfo]:
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            return None
        member = await self._resolve_member(guild, user_id)
        return member_to_info(member) if member else None

    async def find_role(self, guild_id: int, name: str) -> Optional[RoleInfo]:
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            return None
        role = discord.utils.get(guild.roles, name=name)
        return RoleInfo(id=role.id, name=role.name, position=role.position) if role else None

    async def find_channel(self, guild_id: int, name: str) -> Optional[int]:
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            return None
        channel = discord.utils.get(guild.text_channels, name=name)
        return channel.id if channel else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def ban(
        self, guild_id: int, user_id: int, *, reason: str, delete_message_seconds: int = 0
    ) -> None:
        guild = await self._require_guild(guild_id)
        await self._call(
            guild.ban(
                discord.Object(id=user_id),
                reason=clip(reason, AUDIT_REASON_LIMIT),
                delete_message_seconds=delete_message_seconds,
            )
        )

    async def unban(self, guild_id: int, user_id: int, reason: str) -> None:
        guild = await self._require_guild(guild_id)
        await self._call(guild.unban(discord.Object(id=user_id), reason=clip(reason, AUDIT_REASON_LIMIT)))

    async def add_role(self, member: MemberInfo, role: RoleInfo, reason: str) -> None:
        discord_member = await self._require_member(member)
        await self._call(discord_member.add_roles(discord.Object(id=role.id), reason=clip(reason, AUDIT_REASON_LIMIT)))

    async def remove_role(self, member: MemberInfo, role: RoleInfo, reason: str) -> None:
        discord_member = await self._require_member(member)
        await self._call(discord_member.remove_roles(discord.Object(id=role.id), reason=clip(reason, AUDIT_REASON_LIMIT)))

    async def create_role(self, guild_id: int, name: str, reason: str) -> RoleInfo:
        """Create a role with no permissions of its own."""
        guild = await self._require_guild(guild_id)
        role = await self._call(
            guild.create_role(name=name, permissions=discord.Permissions.none(), reason=clip(reason, AUDIT_REASON_LIMIT))
        )
        return RoleInfo(id=role.id, name=role.name, position=role.position)

    async def create_channel(self, guild_id: int, name: str, reason: str) -> int:
        guild = await self._require_guild(guild_id)
        channel = await self._call(guild.create_text_channel(name, reason=clip(reason, AUDIT_REASON_LIMIT)))
        return channel.id

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_direct_message(self, user_id: int, content: MessageContent) -> None:
        user = self.bot.get_user(user_id) or await self._call(self.bot.fetch_user(user_id))
        await self._send(user, content)

    async def send_channel_message(self, channel_id: int, content: MessageContent) -> None:
        channel = self.bot.get_channel(channel_id) or await self._call(self.bot.fetch_channel(channel_id))
        await self._send(channel, content)

    async def _send(self, destination: discord.abc.Messageable, content: MessageContent) -> None:
        if isinstance(content, discord.Embed):
            await self._call(destination.send(embed=content))
        else:
            await self._call(destination.send(content))
