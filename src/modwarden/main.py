"""
Modwarden
=========

Discord moderation bot: slash commands for manual moderation, a numbered
case history per guild, automatic escalation of repeated warnings and
persistent temporary bans.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. MODWARDEN_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("MODWARDEN_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from modwarden.bot.services import ModerationServices
from modwarden.configuration.app_configuration import app_config
from modwarden.database.database import Database
from modwarden.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for guild and member events. Message content is not needed."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    intents.bans = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot, services: ModerationServices) -> None:
    """Register all cogs with the bot, sharing one set of moderation services."""
    from modwarden.bot.cogs import case_cmds, moderation_cmds, scheduler_cog

    moderation_cmds.setup(discord_bot_instance, services)
    case_cmds.setup(discord_bot_instance, services)
    scheduler_cog.setup(discord_bot_instance, services)

    logger.info("All cogs loaded successfully.")


def create_bot(database: Database) -> tuple[discord.Bot, ModerationServices]:
    """Instantiate the Discord bot and its moderation services."""
    bot = discord.Bot(intents=build_intents())
    services = ModerationServices.build(bot, database.connections, app_config)
    load_cogs(bot, services)
    return bot, services


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Connect to Discord and run until the connection closes."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(
    bot: discord.Bot | None,
    services: ModerationServices | None,
    database: Database,
) -> None:
    """Stop the scheduler, close the bot, then close the database, in that order.

    The scheduler must be stopped first so no poll writes to a closed
    connection.
    """
    if services is not None:
        try:
            await services.scheduler.stop()
        except Exception as exc:
            logger.exception("Error while stopping tempban scheduler: %s", exc)

    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
            logger.info("Discord bot connection closed.")
        except Exception as exc:
            logger.exception("Error while closing Discord bot: %s", exc)

    try:
        await database.shutdown()
    except Exception as exc:
        logger.exception("Error during database shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database and the bot, returning an exit code."""
    token = load_environment()
    database = Database(app_config.database_path)

    try:
        logger.info("Initializing database at %s...", database.db_path)
        await database.initialize()
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    bot: discord.Bot | None = None
    services: ModerationServices | None = None
    exit_code = 0
    try:
        bot, services = create_bot(database)
        await start_bot(bot, token)
    except discord.LoginFailure as exc:
        logger.critical("Discord rejected the bot token: %s", exc)
        exit_code = 1
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, services, database)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Modwarden…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 0 if code is None else 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
