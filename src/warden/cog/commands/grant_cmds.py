"""
Grant commands cog: manage the overlay permission grants.

Administrators can hand a moderation permission to a role without giving the
role the Discord permission itself. The sanction guard consults these grants
when the executor lacks the native permission.
"""

from __future__ import annotations

import discord
from discord import Option
from discord.ext import commands

from warden.services.authorization import GRANTABLE_PERMISSIONS, OverlayAuthorization
from warden.util.logger import get_logger

logger = get_logger("grant_commands")


class GrantCommandsCog(commands.Cog):
    """Slash commands for granting overlay permissions to roles."""

    grant = discord.SlashCommandGroup(
        "grant",
        "Grant moderation permissions to roles through the bot",
        default_member_permissions=discord.Permissions(administrator=True),
    )

    def __init__(self, bot: discord.Bot, authorization: OverlayAuthorization) -> None:
        self.bot = bot
        self.authorization = authorization
        logger.info("[GRANT CMDS] Grant commands cog loaded")

    async def _ensure_admin(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return False
        if not isinstance(ctx.user, discord.Member) or not ctx.user.guild_permissions.administrator:
            await ctx.respond("You need the Administrator permission to manage grants.", ephemeral=True)
            return False
        return True

    @grant.command(name="add", description="Grant a permission to a role")
    async def add(
        self,
        ctx: discord.ApplicationContext,
        role: Option(discord.Role, "Role to receive the permission.", required=True),  # type: ignore
        permission: Option(str, "Permission to grant.", choices=list(GRANTABLE_PERMISSIONS), required=True),  # type: ignore
    ) -> None:
        if not await self._ensure_admin(ctx):
            return

        created = await self.authorization.grant(ctx.guild_id, role.id, permission, ctx.user.id)
        if created:
            await ctx.respond(f"✅ Granted `{permission}` to {role.mention}.", ephemeral=True)
        else:
            await ctx.respond(f"{role.mention} already has `{permission}`.", ephemeral=True)

    @grant.command(name="remove", description="Remove a granted permission from a role")
    async def remove(
        self,
        ctx: discord.ApplicationContext,
        role: Option(discord.Role, "Role to remove the permission from.", required=True),  # type: ignore
        permission: Option(str, "Permission to remove.", choices=list(GRANTABLE_PERMISSIONS), required=True),  # type: ignore
    ) -> None:
        if not await self._ensure_admin(ctx):
            return

        removed = await self.authorization.revoke(ctx.guild_id, role.id, permission)
        if removed:
            await ctx.respond(f"✅ Removed `{permission}` from {role.mention}.", ephemeral=True)
        else:
            await ctx.respond(f"{role.mention} does not have `{permission}`.", ephemeral=True)

    @grant.command(name="list", description="List every granted permission in this server")
    async def list_grants(self, ctx: discord.ApplicationContext) -> None:
        if not await self._ensure_admin(ctx):
            return

        grants = await self.authorization.list_grants(ctx.guild_id)
        embed = discord.Embed(title="Granted permissions", color=discord.Color.blurple())
        if not grants:
            embed.description = "No permissions have been granted."
        else:
            embed.description = "\n".join(
                f"<@&{role_id}>: {', '.join(f'`{p}`' for p in sorted(permissions))}"
                for role_id, permissions in sorted(grants.items())
            )
        await ctx.respond(embed=embed, ephemeral=True)


def setup(bot: discord.Bot, authorization: OverlayAuthorization) -> None:
    bot.add_cog(GrantCommandsCog(bot, authorization))
