"""
Modcase Discord Bot
===================

Entry point of the moderation case bot: opens the database, builds the
moderation services once, connects a py-cord client and loads the command
extensions configured in ``config/app_config.yml``.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Project directory holding ``config/``, ``data/`` and ``.env``.

    ``MODCASE_HOME`` wins when set. A frozen build uses the directory of the
    executable; a source checkout uses the directory above ``src/``.
    """
    home = os.getenv("MODCASE_HOME")
    if home:
        return Path(home).resolve()
    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent
    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
TOKEN_VARIABLE = "DISCORD_BOT_TOKEN"

import asyncio
from dataclasses import dataclass

import discord
from dotenv import load_dotenv

from modcase.configuration.app_configuration import AppConfig
from modcase.database.db_cache import GuildCache
from modcase.database.db_connection import ConnectionManager
from modcase.moderation.case_manager import CaseManager
from modcase.moderation.config_store import ModerationConfigStore
from modcase.moderation.escalation_workflow import EscalationWorkflow
from modcase.moderation.log_dispatcher import ModerationLogDispatcher
from modcase.moderation.notifier import Notifier, DiscordNotifier
from modcase.services.feature_toggle_service import FeatureToggleService
from modcase.services.feature_toggle_store import FeatureToggleStore
from modcase.util.logger import get_logger, handle_exception


logger = get_logger("main")


@dataclass
class Runtime:
    """Every long-lived service, built once and shared by the extensions."""

    app_config: AppConfig
    db: ConnectionManager
    config_store: ModerationConfigStore
    case_manager: CaseManager
    dispatcher: ModerationLogDispatcher
    feature_store: FeatureToggleStore
    feature_service: FeatureToggleService
    workflow: EscalationWorkflow


def load_environment() -> str:
    """Read ``.env`` from the project directory and return the bot token.

    Exits the process when no token is configured.
    """
    load_dotenv(BASE_DIR / ".env")
    token = os.getenv(TOKEN_VARIABLE, "").strip()
    if token:
        return token
    logger.critical("%s is not set; cannot log in to Discord.", TOKEN_VARIABLE)
    raise SystemExit(1)


def build_intents() -> discord.Intents:
    # Member intent is needed to look up timeout targets
    intents = discord.Intents.default()
    intents.members = True
    intents.guilds = intents.messages = True
    return intents


def build_runtime(app_config: AppConfig, db: ConnectionManager, notifier: Notifier) -> Runtime:
    """Wire the moderation services together around one database and notifier.

    The caches are created here, one per concern, and injected into the
    stores that use them.
    """
    config_cache = GuildCache("moderation_config", default_ttl_seconds=app_config.config_ttl_seconds)
    feature_cache = GuildCache("guild_features", default_ttl_seconds=app_config.feature_ttl_seconds)

    config_store = ModerationConfigStore(db, config_cache)
    case_manager = CaseManager(db, config_store, serialize_per_target=app_config.serialize_case_counting)
    dispatcher = ModerationLogDispatcher(config_store, notifier)
    feature_store = FeatureToggleStore(
        db,
        feature_cache,
        success_ttl_seconds=app_config.feature_ttl_seconds,
        failure_ttl_seconds=app_config.feature_failure_ttl_seconds,
    )

    return Runtime(
        app_config=app_config,
        db=db,
        config_store=config_store,
        case_manager=case_manager,
        dispatcher=dispatcher,
        feature_store=feature_store,
        feature_service=FeatureToggleService(feature_store),
        workflow=EscalationWorkflow(case_manager, config_store, dispatcher, notifier),
    )


def create_bot(app_config: AppConfig, db: ConnectionManager) -> discord.Bot:
    """Instantiate the bot, attach the runtime and load the configured extensions."""
    bot = discord.Bot(intents=build_intents())
    bot.modcase = build_runtime(app_config, db, DiscordNotifier(bot))

    extensions = app_config.bot_extensions
    if not extensions:
        logger.warning("No extensions configured; the bot will not register any commands.")
    for extension in extensions:
        bot.load_extension(extension)
        logger.info("Loaded extension %s", extension)
    return bot


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Log in and block until the gateway connection ends."""
    logger.info("Logging in to Discord")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Gateway task cancelled")


async def shutdown_runtime(bot: discord.Bot | None, db: ConnectionManager) -> None:
    """Close the Discord client and the database connection."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception:
            logger.exception("Discord client did not close cleanly")

    await db.close()
    logger.info("Modcase stopped.")


async def async_main() -> int:
    """Bootstrap the database and the bot, returning an exit code."""
    os.chdir(BASE_DIR)
    token = load_environment()
    app_config = AppConfig(BASE_DIR / "config" / "app_config.yml")
    db = ConnectionManager()

    try:
        await db.open(app_config.database_path)
    except Exception:
        logger.exception("Could not open database %s", app_config.database_path)
        return 1

    bot: discord.Bot | None = None
    try:
        bot = create_bot(app_config, db)
        await start_bot(bot, token)
    except Exception:
        logger.exception("Bot stopped with an error")
        return 1
    finally:
        await shutdown_runtime(bot, db)
    return 0


def main() -> int:
    """Console entry point; returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Modcase")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
        return 0
    except SystemExit as stop:
        return stop.code if isinstance(stop.code, int) else 1


if __name__ == "__main__":
    sys.exit(main())
