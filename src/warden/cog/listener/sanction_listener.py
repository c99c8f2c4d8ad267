"""Lifecycle listener: runs reconciliation while the bot is connected.

Also keeps the store in step with bans lifted by hand from Discord's own UI,
so the scheduler does not try to unban someone who is already unbanned.
"""

from __future__ import annotations

import discord
from discord.ext import commands

from warden.datatypes.sanction_datatypes import SanctionKind
from warden.sanctions.engine import SanctionEngine
from warden.sanctions.errors import PersistenceError
from warden.util.logger import get_logger

logger = get_logger("sanction_listener")


class SanctionListenerCog(commands.Cog):
    """Starts and stops the engine's reconciliation schedulers."""

    def __init__(self, bot: discord.Bot, engine: SanctionEngine) -> None:
        self.bot = bot
        self.engine = engine
        logger.info("[SANCTION LISTENER] Sanction listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self) -> None:
        # on_ready fires again after reconnects; start() is a no-op then.
        self.engine.start()
        if self.bot.user:
            logger.info("Bot connected as %s (ID: %s)", self.bot.user, self.bot.user.id)

    @commands.Cog.listener(name="on_member_unban")
    async def on_member_unban(self, guild: discord.Guild, user: discord.User) -> None:
        try:
            await self.engine.forget_sanction(guild.id, user.id, SanctionKind.BAN)
        except PersistenceError as exc:
            logger.warning(
                "[SANCTION LISTENER] Could not clear ban record for %s in guild %s: %s",
                user.id, guild.id, exc.message,
            )

    def cog_unload(self) -> None:
        self.engine.stop()
        logger.info("[SANCTION LISTENER] Reconciliation stopped")


def setup(bot: discord.Bot, engine: SanctionEngine) -> None:
    bot.add_cog(SanctionListenerCog(bot, engine))
