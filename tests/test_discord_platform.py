import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from warden.datatypes.platform_datatypes import MemberInfo, RoleInfo
from warden.platform.discord_platform import DiscordPlatform, member_to_info, translate_http_error
from warden.sanctions.errors import PlatformError, PlatformErrorCode


def http_error(cls, status: int, code: int, text: str = "error"):
    response = MagicMock()
    response.status = status
    response.reason = text
    return cls(response, {"code": code, "message": text})


def make_guild(guild_id: int = 1000) -> MagicMock:
    guild = MagicMock()
    guild.id = guild_id
    guild.name = "Test Guild"
    guild.get_member.return_value = None
    guild.fetch_member = AsyncMock()
    guild.ban = AsyncMock()
    guild.unban = AsyncMock()
    return guild


def make_platform(guild: MagicMock | None = None) -> DiscordPlatform:
    bot = MagicMock()
    bot.get_guild.return_value = guild
    bot.fetch_guild = AsyncMock()
    return DiscordPlatform(bot, call_timeout=1.0)


def test_translate_http_error_uses_json_code() -> None:
    error = translate_http_error(http_error(discord.NotFound, 404, 10007, "Unknown Member"))

    assert error.code is PlatformErrorCode.UNKNOWN_MEMBER
    assert error.recoverable
    assert "Unknown Member" in error.message


def test_translate_forbidden_without_code() -> None:
    error = translate_http_error(http_error(discord.Forbidden, 403, 0))

    assert error.code is PlatformErrorCode.MISSING_PERMISSIONS
    assert not error.recoverable


def test_member_to_info() -> None:
    member = SimpleNamespace(
        id=3001,
        guild=SimpleNamespace(id=1000),
        roles=[SimpleNamespace(id=1), SimpleNamespace(id=501)],
        top_role=SimpleNamespace(position=4),
        guild_permissions=[("ban_members", True), ("administrator", False)],
    )

    info = member_to_info(member)

    assert info.role_ids == frozenset({1, 501})
    assert info.top_role_position == 4
    assert info.permissions == frozenset({"ban_members"})
    assert not info.is_administrator


@pytest.mark.asyncio
async def test_call_timeout_becomes_platform_error() -> None:
    platform = DiscordPlatform(MagicMock(), call_timeout=0.01)

    with pytest.raises(PlatformError) as excinfo:
        await platform._call(asyncio.sleep(1))

    assert excinfo.value.code is PlatformErrorCode.TIMEOUT


@pytest.mark.asyncio
async def test_fetch_member_returns_none_when_unknown() -> None:
    guild = make_guild()
    guild.fetch_member.side_effect = http_error(discord.NotFound, 404, 10007)
    platform = make_platform(guild)

    assert await platform.fetch_member(1000, 3001) is None


@pytest.mark.asyncio
async def test_fetch_guild_returns_none_when_unknown() -> None:
    platform = make_platform(None)
    platform.bot.fetch_guild.side_effect = http_error(discord.NotFound, 404, 10004)

    assert await platform.fetch_guild(1000) is None


@pytest.mark.asyncio
async def test_unban_translates_unknown_ban() -> None:
    guild = make_guild()
    guild.unban.side_effect = http_error(discord.NotFound, 404, 10026, "Unknown Ban")
    platform = make_platform(guild)

    with pytest.raises(PlatformError) as excinfo:
        await platform.unban(1000, 3001, reason="expired")

    assert excinfo.value.code is PlatformErrorCode.UNKNOWN_BAN


@pytest.mark.asyncio
async def test_ban_passes_delete_message_seconds() -> None:
    guild = make_guild()
    platform = make_platform(guild)

    await platform.ban(1000, 3001, reason="spam", delete_message_seconds=604800)

    _, kwargs = guild.ban.await_args
    assert kwargs == {"reason": "spam", "delete_message_seconds": 604800}
    assert guild.ban.await_args.args[0].id == 3001


@pytest.mark.asyncio
async def test_add_role_requires_member() -> None:
    guild = make_guild()
    guild.fetch_member.side_effect = http_error(discord.NotFound, 404, 10007)
    platform = make_platform(guild)

    with pytest.raises(PlatformError) as excinfo:
        await platform.add_role(MemberInfo(id=3001, guild_id=1000), RoleInfo(id=501, name="mute"), "mute")

    assert excinfo.value.code is PlatformErrorCode.UNKNOWN_MEMBER


@pytest.mark.asyncio
async def test_audit_reason_is_clipped() -> None:
    guild = make_guild()
    platform = make_platform(guild)

    await platform.unban(1000, 3001, reason="r" * 900)

    assert len(guild.unban.await_args.kwargs["reason"]) == 512


@pytest.mark.asyncio
async def test_create_role_has_no_permissions() -> None:
    guild = make_guild()
    guild.create_role = AsyncMock(return_value=SimpleNamespace(id=777, name="mute", position=3))
    platform = make_platform(guild)

    role = await platform.create_role(1000, "mute", "setup")

    assert role == RoleInfo(id=777, name="mute", position=3)
    assert guild.create_role.await_args.kwargs["permissions"] == discord.Permissions.none()


@pytest.mark.asyncio
async def test_create_channel_returns_channel_id() -> None:
    guild = make_guild()
    guild.create_text_channel = AsyncMock(return_value=SimpleNamespace(id=888))
    platform = make_platform(guild)

    assert await platform.create_channel(1000, "jail", "setup") == 888
    assert guild.create_text_channel.await_args.args == ("jail",)
