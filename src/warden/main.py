"""
Warden
======

Discord bot that issues temporary bans, mutes and jail sentences and lifts
them automatically once they expire.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the project directory.

    Resolution order:
    1. WARDEN_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("WARDEN_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from warden.cog.commands import grant_cmds, sanction_cmds, setup_cmds
from warden.cog.listener import sanction_listener
from warden.configuration.app_configuration import app_config
from warden.database.db_connection import db_connection
from warden.database.db_schema import SchemaManager
from warden.platform.discord_platform import DiscordPlatform
from warden.sanctions.engine import SanctionEngine
from warden.services.authorization import OverlayAuthorization
from warden.services.case_ledger import SqliteCaseLedger
from warden.services.sanction_store import SanctionStore
from warden.util.logger import get_logger, handle_exception

logger = get_logger("main")


def load_environment() -> str:
    """Load ``.env`` and return the Discord bot token.

    Raises:
        SystemExit: If ``DISCORD_BOT_TOKEN`` is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    return intents


async def initialize_database() -> None:
    await db_connection.open(app_config.database_path)
    await SchemaManager.initialize_schema(db_connection.connection)


def create_bot() -> tuple[discord.Bot, SanctionEngine]:
    """Instantiate the bot, wire the engine and register all cogs."""
    bot = discord.Bot(intents=build_intents())

    platform = DiscordPlatform(bot, call_timeout=app_config.platform_call_timeout)
    authorization = OverlayAuthorization(db_connection)
    ledger = SqliteCaseLedger(db_connection)
    engine = SanctionEngine(
        platform=platform,
        authorization=authorization,
        store=SanctionStore(db_connection),
        ledger=ledger,
        config=app_config,
    )

    sanction_cmds.setup(bot, engine, ledger)
    grant_cmds.setup(bot, authorization)
    setup_cmds.setup(bot, engine)
    sanction_listener.setup(bot, engine)
    logger.info("All cogs loaded successfully.")
    return bot, engine


async def shutdown_runtime(bot: discord.Bot, engine: SanctionEngine | None) -> None:
    """Stop reconciliation, close the Discord client and the database."""
    if engine is not None:
        try:
            await engine.shutdown()
        except Exception as exc:
            logger.exception("Error during reconciliation shutdown: %s", exc)

    if not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord client: %s", exc)

    await db_connection.close()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    token = load_environment()

    try:
        logger.info("Initializing database at %s...", app_config.database_path)
        await initialize_database()
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    try:
        bot, engine = create_bot()
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await db_connection.close()
        return 1

    exit_code = 0
    logger.info("Attempting to connect to Discord...")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, engine)

    return exit_code


def main() -> int:
    """Console entrypoint; returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Warden...")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
