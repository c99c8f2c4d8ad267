"""
Audit and notification sink.

Formats embeds for every sanction state change and delivers them to the
guild's moderation log channel and, where it makes sense, to the affected
user. Delivery is best effort: every failure is logged and swallowed so the
lifecycle operation that triggered it is never affected.
"""

from __future__ import annotations

import datetime
from typing import Optional

import discord

from warden.datatypes.sanction_datatypes import (
    ReversalOutcome,
    ReversalReport,
    SanctionKind,
    SanctionRecord,
)
from warden.platform.interfaces import PlatformClient
from warden.sanctions.duration import format_duration
from warden.util.logger import get_logger
from warden.util.timestamps import discord_timestamp, to_unix_ms
from warden.util.text import EMBED_FIELD_LIMIT, clip

logger = get_logger("audit_sink")

APPLIED_TITLES = {
    SanctionKind.BAN: "🔨 Temporary Ban",
    SanctionKind.MUTE: "🔇 Temporary Mute",
    SanctionKind.IMAGE_MUTE: "🖼️ Temporary Image Mute",
    SanctionKind.REACTION_MUTE: "🚫 Temporary Reaction Mute",
    SanctionKind.JAIL: "🔒 Temporary Jail",
}

REVERSED_TITLES = {
    SanctionKind.BAN: "🔓 Automatic Unban",
    SanctionKind.MUTE: "🔊 Automatic Unmute",
    SanctionKind.IMAGE_MUTE: "🔊 Automatic Image Unmute",
    SanctionKind.REACTION_MUTE: "🔊 Automatic Reaction Unmute",
    SanctionKind.JAIL: "🔓 Automatic Unjail",
}

RESTORED_ABILITIES = {
    SanctionKind.BAN: "rejoin the server",
    SanctionKind.MUTE: "send messages",
    SanctionKind.IMAGE_MUTE: "upload files and images",
    SanctionKind.REACTION_MUTE: "add reactions",
    SanctionKind.JAIL: "access all channels",
}

OUTCOME_DESCRIPTIONS = {
    ReversalOutcome.REVERSED: "Sanction lifted.",
    ReversalOutcome.ALREADY_REVERSED: "Sanction had already been lifted manually; record cleared.",
    ReversalOutcome.GUILD_MISSING: "Server unavailable; record cleared.",
    ReversalOutcome.TARGET_MISSING: "User is no longer a member; record cleared.",
    ReversalOutcome.ROLE_MISSING: "Sanction role no longer exists; record cleared.",
    ReversalOutcome.FAILED: "Lifting the sanction failed; record cleared. Please check manually.",
}


def _duration_ms(record: SanctionRecord) -> int:
    return to_unix_ms(record.expires_at) - to_unix_ms(record.created_at)


def build_applied_embed(record: SanctionRecord, case_id: Optional[int]) -> discord.Embed:
    embed = discord.Embed(
        title=APPLIED_TITLES[record.kind],
        description=f"<@{record.user_id}> has received a {record.kind.label}.",
        color=discord.Color.red(),
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.add_field(name="Target", value=f"<@{record.user_id}>", inline=True)
    embed.add_field(name="Moderator", value=f"<@{record.executor_id}>", inline=True)
    embed.add_field(name="Case ID", value=f"#{case_id}" if case_id is not None else "n/a", inline=True)
    embed.add_field(
        name="Duration",
        value=f"{format_duration(_duration_ms(record))} ({record.duration_token})",
        inline=True,
    )
    embed.add_field(name="Expires", value=discord_timestamp(record.expires_at), inline=True)
    if record.kind is SanctionKind.BAN:
        embed.add_field(
            name="Messages Deleted",
            value="7 days" if record.extra.get("delete_messages") else "None",
            inline=True,
        )
    embed.add_field(name="Reason", value=clip(record.reason, EMBED_FIELD_LIMIT), inline=False)
    embed.set_footer(text=f"User ID: {record.user_id} • Moderator ID: {record.executor_id}")
    return embed


def build_reversed_embed(report: ReversalReport, automatic: bool = True) -> discord.Embed:
    record = report.record
    title = REVERSED_TITLES[record.kind]
    if not automatic:
        title = title.replace("Automatic ", "")
    embed = discord.Embed(
        title=title,
        description=f"<@{record.user_id}>: {OUTCOME_DESCRIPTIONS[report.outcome]}",
        color=discord.Color.green() if report.outcome is not ReversalOutcome.FAILED else discord.Color.orange(),
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.add_field(name="Target", value=f"<@{record.user_id}>", inline=True)
    embed.add_field(name="Originally Issued By", value=f"<@{record.executor_id}>", inline=True)
    embed.add_field(name="Original Duration", value=record.duration_token, inline=True)
    embed.add_field(name="Issued At", value=discord_timestamp(record.created_at), inline=True)
    embed.add_field(name="Outcome", value=str(report.outcome), inline=True)
    if report.case_id is not None:
        embed.add_field(name="Case ID", value=f"#{report.case_id}", inline=True)
    embed.add_field(name="Original Reason", value=clip(record.reason, EMBED_FIELD_LIMIT), inline=False)
    if report.detail:
        embed.add_field(name="Detail", value=clip(report.detail, EMBED_FIELD_LIMIT), inline=False)
    embed.set_footer(text=f"User ID: {record.user_id}" + (" • Automatic Action" if automatic else ""))
    return embed


class AuditSink:
    """Delivers sanction embeds to the log channel and to affected users."""

    def __init__(self, platform: PlatformClient, log_channel_name: str = "jail-log") -> None:
        self.platform = platform
        self.log_channel_name = log_channel_name

    async def _send_to_log(self, guild_id: int, embed: discord.Embed) -> bool:
        try:
            channel_id = await self.platform.find_channel(guild_id, self.log_channel_name)
            if channel_id is None:
                logger.debug("[AUDIT] No #%s channel in guild %s; skipping log", self.log_channel_name, guild_id)
                return False
            await self.platform.send_channel_message(channel_id, embed)
            return True
        except Exception as exc:
            logger.warning("[AUDIT] Failed to send log entry to guild %s: %s", guild_id, exc)
            return False

    async def _send_to_user(self, user_id: int, embed: discord.Embed) -> bool:
        try:
            await self.platform.send_direct_message(user_id, embed)
            return True
        except Exception as exc:
            # Users may have DMs disabled; never retried.
            logger.debug("[AUDIT] Could not DM %s: %s", user_id, exc)
            return False

    async def sanction_applied(self, record: SanctionRecord, case_id: Optional[int]) -> bool:
        return await self._send_to_log(record.guild_id, build_applied_embed(record, case_id))

    async def sanction_reversed(self, report: ReversalReport, automatic: bool = True) -> bool:
        return await self._send_to_log(report.record.guild_id, build_reversed_embed(report, automatic))

    async def notify_sanctioned(self, record: SanctionRecord, guild_name: str) -> bool:
        embed = discord.Embed(
            title=f"You have received a {record.kind.label}",
            description=f"You have received a {record.kind.label} in **{guild_name}**.",
            color=discord.Color.red(),
        )
        embed.add_field(name="Duration", value=record.duration_token, inline=True)
        embed.add_field(name="Expires", value=discord_timestamp(record.expires_at, "R"), inline=True)
        embed.add_field(name="Reason", value=clip(record.reason, EMBED_FIELD_LIMIT), inline=False)
        return await self._send_to_user(record.user_id, embed)

    async def notify_reversed(self, record: SanctionRecord, guild_name: str) -> bool:
        embed = discord.Embed(
            title=f"Your {record.kind.label} has ended",
            description=(
                f"Your {record.kind.label} in **{guild_name}** has ended and you can now "
                f"{RESTORED_ABILITIES[record.kind]} again."
            ),
            color=discord.Color.green(),
        )
        embed.add_field(name="Original Duration", value=record.duration_token, inline=True)
        embed.add_field(name="Reason", value=clip(record.reason, EMBED_FIELD_LIMIT), inline=True)
        return await self._send_to_user(record.user_id, embed)
