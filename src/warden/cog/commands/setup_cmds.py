"""
Setup command cog: create the roles and channels the sanctions rely on.
"""

from __future__ import annotations

import discord
from discord.ext import commands

from warden.sanctions.engine import SanctionEngine
from warden.sanctions.provisioning import ProvisionReport
from warden.util.logger import get_logger
from warden.util.text import EMBED_FIELD_LIMIT, clip

logger = get_logger("setup_commands")


def _bullet_list(names, prefix: str = "") -> str:
    return "\n".join(f"• {prefix}{name}" for name in names) or "None"


def build_setup_embed(report: ProvisionReport) -> discord.Embed:
    embed = discord.Embed(
        title="✅ Moderation setup complete" if report.ok else "⚠️ Moderation setup finished with errors",
        description="Sanction roles and moderation channels have been checked.",
        color=discord.Color.green() if report.ok else discord.Color.orange(),
    )
    embed.add_field(name="Roles Created", value=_bullet_list(report.created_roles), inline=True)
    embed.add_field(name="Roles Already Present", value=_bullet_list(report.existing_roles), inline=True)
    embed.add_field(name="Channels Created", value=_bullet_list(report.created_channels, "#"), inline=False)
    embed.add_field(name="Channels Already Present", value=_bullet_list(report.existing_channels, "#"), inline=True)
    if report.errors:
        embed.add_field(name="Errors", value=clip("\n".join(report.errors), EMBED_FIELD_LIMIT), inline=False)
    return embed


class SetupCommandsCog(commands.Cog):
    """Administrator command that provisions a guild for sanctions."""

    def __init__(self, bot: discord.Bot, engine: SanctionEngine) -> None:
        self.bot = bot
        self.engine = engine
        logger.info("[SETUP CMDS] Setup commands cog loaded")

    @commands.slash_command(
        name="setup",
        description="Create the sanction roles and moderation channels.",
        default_member_permissions=discord.Permissions(administrator=True),
    )
    async def setup_command(self, ctx: discord.ApplicationContext) -> None:
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return
        if not isinstance(ctx.user, discord.Member) or not ctx.user.guild_permissions.administrator:
            await ctx.respond("You need the Administrator permission to run setup.", ephemeral=True)
            return

        await ctx.defer(ephemeral=True)
        report = await self.engine.provision_guild(ctx.guild_id)
        await ctx.send_followup(embed=build_setup_embed(report))


def setup(bot: discord.Bot, engine: SanctionEngine) -> None:
    """Register the setup commands cog with the bot."""
    bot.add_cog(SetupCommandsCog(bot, engine))
