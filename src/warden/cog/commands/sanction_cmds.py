"""
Sanction commands cog: temporary bans, mutes and jail.

Every command defers, hands the request to the :class:`SanctionEngine` and
reports back with an embed. Engine errors are ``SanctionError`` subclasses
whose message is shown to the moderator as-is; anything else is logged and
answered with a generic failure.
"""

from __future__ import annotations

from typing import List, Optional

import discord
from discord import Option
from discord.ext import commands

from warden.datatypes.sanction_datatypes import (
    ModerationCase,
    ReversalReport,
    SanctionKind,
    SanctionRecord,
    SanctionResult,
)
from warden.sanctions.engine import SanctionEngine
from warden.sanctions.duration import format_duration
from warden.sanctions.errors import SanctionError
from warden.services.case_ledger import SqliteCaseLedger
from warden.util.logger import get_logger
from warden.util.timestamps import discord_timestamp
from warden.util.text import AUDIT_REASON_LIMIT, EMBED_FIELD_LIMIT, clip

logger = get_logger("sanction_commands")

KIND_CHOICES = [kind.value for kind in SanctionKind]
MAX_LISTED_SANCTIONS = 25
MAX_REASON_LENGTH = AUDIT_REASON_LIMIT


def build_error_embed(title: str, message: str) -> discord.Embed:
    return discord.Embed(title=f"❌ {title}", description=message, color=discord.Color.red())


def build_result_embed(result: SanctionResult, target_mention: str) -> discord.Embed:
    record = result.record
    embed = discord.Embed(
        title=f"✅ {record.kind.label.capitalize()} issued",
        description=f"{target_mention} has received a {record.kind.label}.",
        color=discord.Color.green(),
    )
    embed.add_field(name="Duration", value=format_duration(result.duration_ms), inline=True)
    embed.add_field(name="Expires", value=discord_timestamp(result.expires_at), inline=True)
    embed.add_field(
        name="Case ID",
        value=f"#{result.case_id}" if result.case_id is not None else "not recorded",
        inline=True,
    )
    embed.add_field(name="Reason", value=clip(record.reason, EMBED_FIELD_LIMIT), inline=False)
    if result.notice:
        embed.add_field(name="Note", value=clip(result.notice, EMBED_FIELD_LIMIT), inline=False)
    return embed


def build_lift_embed(report: ReversalReport) -> discord.Embed:
    record = report.record
    embed = discord.Embed(
        title=f"✅ {record.kind.label.capitalize()} lifted",
        description=f"<@{record.user_id}>'s {record.kind.label} has been lifted ({report.outcome}).",
        color=discord.Color.green(),
    )
    if report.case_id is not None:
        embed.add_field(name="Case ID", value=f"#{report.case_id}", inline=True)
    if report.detail:
        embed.add_field(name="Detail", value=clip(report.detail, EMBED_FIELD_LIMIT), inline=False)
    return embed


def build_sanction_list_embed(records: List[SanctionRecord], guild_name: str) -> discord.Embed:
    embed = discord.Embed(title=f"Active sanctions in {guild_name}", color=discord.Color.blurple())
    if not records:
        embed.description = "No active sanctions."
        return embed

    lines = [
        f"**{record.kind.label}** <@{record.user_id}> by <@{record.executor_id}>, "
        f"ends {discord_timestamp(record.expires_at, 'R')}"
        for record in records[:MAX_LISTED_SANCTIONS]
    ]
    if len(records) > MAX_LISTED_SANCTIONS:
        lines.append(f"... and {len(records) - MAX_LISTED_SANCTIONS} more")
    embed.description = "\n".join(lines)
    return embed


def build_case_embed(case: ModerationCase) -> discord.Embed:
    embed = discord.Embed(
        title=f"Case #{case.case_id}: {case.action}",
        color=discord.Color.blurple(),
        timestamp=case.created_at,
    )
    embed.add_field(name="Target", value=f"<@{case.target_id}>", inline=True)
    embed.add_field(name="Moderator", value=f"<@{case.executor_id}>", inline=True)
    if case.duration:
        embed.add_field(name="Duration", value=case.duration, inline=True)
    if case.expires_at:
        embed.add_field(name="Expires", value=discord_timestamp(case.expires_at), inline=True)
    if case.extra.get("automatic"):
        embed.add_field(name="Automatic", value="Yes", inline=True)
    embed.add_field(name="Reason", value=clip(case.reason, EMBED_FIELD_LIMIT), inline=False)
    return embed


class SanctionCommandsCog(commands.Cog):
    """Slash commands for issuing, lifting and inspecting temporary sanctions."""

    def __init__(self, bot: discord.Bot, engine: SanctionEngine, ledger: SqliteCaseLedger) -> None:
        self.bot = bot
        self.engine = engine
        self.ledger = ledger
        logger.info("[SANCTION CMDS] Sanction commands cog loaded")

    async def _issue(
        self,
        ctx: discord.ApplicationContext,
        kind: SanctionKind,
        target: discord.abc.User,
        duration: str,
        reason: Optional[str],
        extra: Optional[dict] = None,
    ) -> None:
        await ctx.defer()
        if not ctx.guild_id:
            await ctx.send_followup(embed=build_error_embed("Not Available", "This command can only be used in a server."))
            return

        try:
            result = await self.engine.issue_sanction(
                kind, ctx.guild_id, ctx.user.id, target.id, duration, reason, extra
            )
        except SanctionError as exc:
            await ctx.send_followup(embed=build_error_embed(exc.title, exc.message))
            return
        except Exception:
            logger.exception("[SANCTION CMDS] Unexpected error issuing %s to %s", kind, target.id)
            await ctx.send_followup(
                embed=build_error_embed("Sanction Failed", "An unexpected error occurred. Please try again later.")
            )
            return

        await ctx.send_followup(embed=build_result_embed(result, target.mention))

    @commands.slash_command(name="tempban", description="Temporarily ban a user.")
    async def tempban(
        self,
        ctx: discord.ApplicationContext,
        member: Option(discord.User, "The user to ban.", required=True),  # type: ignore
        time: Option(str, "Ban duration, e.g. 30m, 1h, 7d.", required=True),  # type: ignore
        reason: Option(str, "Reason for the ban.", required=False, default=None, max_length=MAX_REASON_LENGTH),  # type: ignore
        delete_messages: Option(bool, "Delete the user's messages from the last 7 days.", default=False),  # type: ignore
    ) -> None:
        await self._issue(ctx, SanctionKind.BAN, member, time, reason, {"delete_messages": delete_messages})

    @commands.slash_command(name="tempmute", description="Temporarily mute a member.")
    async def tempmute(
        self,
        ctx: discord.ApplicationContext,
        member: Option(discord.Member, "The member to mute.", required=True),  # type: ignore
        duration: Option(str, "Mute duration, e.g. 30m, 1h, 7d.", required=True),  # type: ignore
        reason: Option(str, "Reason for the mute.", required=False, default=None, max_length=MAX_REASON_LENGTH),  # type: ignore
    ) -> None:
        await self._issue(ctx, SanctionKind.MUTE, member, duration, reason)

    @commands.slash_command(name="imute", description="Temporarily stop a member from posting files and images.")
    async def imute(
        self,
        ctx: discord.ApplicationContext,
        member: Option(discord.Member, "The member to image mute.", required=True),  # type: ignore
        duration: Option(str, "Duration, e.g. 30m, 1h, 7d.", required=True),  # type: ignore
        reason: Option(str, "Reason for the image mute.", required=False, default=None, max_length=MAX_REASON_LENGTH),  # type: ignore
    ) -> None:
        await self._issue(ctx, SanctionKind.IMAGE_MUTE, member, duration, reason)

    @commands.slash_command(name="rmute", description="Temporarily stop a member from adding reactions.")
    async def rmute(
        self,
        ctx: discord.ApplicationContext,
        member: Option(discord.Member, "The member to reaction mute.", required=True),  # type: ignore
        duration: Option(str, "Duration, e.g. 30m, 1h, 7d.", required=True),  # type: ignore
        reason: Option(str, "Reason for the reaction mute.", required=False, default=None, max_length=MAX_REASON_LENGTH),  # type: ignore
    ) -> None:
        await self._issue(ctx, SanctionKind.REACTION_MUTE, member, duration, reason)

    @commands.slash_command(name="jail", description="Temporarily jail a member.")
    async def jail(
        self,
        ctx: discord.ApplicationContext,
        member: Option(discord.Member, "The member to jail.", required=True),  # type: ignore
        duration: Option(str, "Jail duration, e.g. 30m, 1h, 7d.", required=True),  # type: ignore
        reason: Option(str, "Reason for the jail sentence.", required=False, default=None, max_length=MAX_REASON_LENGTH),  # type: ignore
    ) -> None:
        await self._issue(ctx, SanctionKind.JAIL, member, duration, reason)

    @commands.slash_command(name="unsanction", description="Lift an active temporary sanction early.")
    async def unsanction(
        self,
        ctx: discord.ApplicationContext,
        member: Option(discord.User, "The sanctioned user.", required=True),  # type: ignore
        kind: Option(str, "Which sanction to lift.", choices=KIND_CHOICES, required=True),  # type: ignore
        reason: Option(str, "Reason for lifting it.", required=False, default=None, max_length=MAX_REASON_LENGTH),  # type: ignore
    ) -> None:
        await ctx.defer()
        if not ctx.guild_id:
            await ctx.send_followup(embed=build_error_embed("Not Available", "This command can only be used in a server."))
            return

        sanction_kind = SanctionKind.parse(kind)
        try:
            report = await self.engine.lift_sanction(ctx.guild_id, member.id, sanction_kind, ctx.user.id, reason)
        except SanctionError as exc:
            await ctx.send_followup(embed=build_error_embed(exc.title, exc.message))
            return
        except Exception:
            logger.exception("[SANCTION CMDS] Unexpected error lifting %s for %s", sanction_kind, member.id)
            await ctx.send_followup(
                embed=build_error_embed("Lift Failed", "An unexpected error occurred. Please try again later.")
            )
            return

        await ctx.send_followup(embed=build_lift_embed(report))

    @commands.slash_command(
        name="sanctions",
        description="List active temporary sanctions in this server.",
        default_member_permissions=discord.Permissions(manage_messages=True),
    )
    async def sanctions(
        self,
        ctx: discord.ApplicationContext,
        kind: Option(str, "Only show one kind of sanction.", choices=KIND_CHOICES, required=False, default=None),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        if not ctx.guild:
            await ctx.send_followup("This command can only be used in a server.")
            return

        try:
            records = await self.engine.list_active(ctx.guild.id, SanctionKind.parse(kind) if kind else None)
        except SanctionError as exc:
            await ctx.send_followup(embed=build_error_embed(exc.title, exc.message))
            return
        await ctx.send_followup(embed=build_sanction_list_embed(records, ctx.guild.name))

    @commands.slash_command(
        name="case",
        description="Show a moderation case.",
        default_member_permissions=discord.Permissions(manage_messages=True),
    )
    async def case(
        self,
        ctx: discord.ApplicationContext,
        case_id: Option(int, "Case number.", required=True, min_value=1),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        if not ctx.guild_id:
            await ctx.send_followup("This command can only be used in a server.")
            return

        case = await self.ledger.get_case(ctx.guild_id, case_id)
        if case is None:
            await ctx.send_followup(embed=build_error_embed("Case Not Found", f"There is no case #{case_id}."))
            return
        await ctx.send_followup(embed=build_case_embed(case))


def setup(bot: discord.Bot, engine: SanctionEngine, ledger: SqliteCaseLedger) -> None:
    """Register the sanction commands cog with the bot."""
    bot.add_cog(SanctionCommandsCog(bot, engine, ledger))
