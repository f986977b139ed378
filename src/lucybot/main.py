"""
Lucy Bot
========

A Discord bot built around hot-reloadable command and event handler files,
with per-user cooldowns, permission checks, a local SQLite cache and an
optional PostgreSQL store.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Determine the base directory of the project.
    Resolution order:
    1. LUCYBOT_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("LUCYBOT_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import signal
from dataclasses import dataclass

from dotenv import load_dotenv

from lucybot.bot.client import ClientFacade
from lucybot.configuration.app_configuration import app_config
from lucybot.database.database import DatabaseManager
from lucybot.ui.console import ConsoleControl, close_client, console_session
from lucybot.util.logger import get_logger, handle_exception


logger = get_logger("main")

RESTART_EXIT_CODE = 42


@dataclass
class Environment:
    """Process settings read from the environment."""

    token: str
    development: bool = False
    dev_guild_id: int | None = None
    database_url: str | None = None


def load_environment() -> Environment:
    """Load ``.env`` and return the process settings.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_TOKEN")
    if not token:
        logger.critical("'DISCORD_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)

    dev_guild_id = None
    raw_guild = os.getenv("DEV_GUILD_ID")
    if raw_guild:
        try:
            dev_guild_id = int(raw_guild)
        except ValueError:
            logger.warning("Ignoring DEV_GUILD_ID=%r: not a numeric guild ID", raw_guild)

    return Environment(
        token=token,
        development=os.getenv("LUCYBOT_ENV", "production").lower() == "development",
        dev_guild_id=dev_guild_id,
        database_url=os.getenv("DATABASE_URL") or None,
    )


def create_database(env: Environment) -> DatabaseManager:
    return DatabaseManager(
        cache_path=app_config.cache_db_path,
        database_url=env.database_url,
        cleanup_interval=app_config.cleanup_interval,
        cache_migrations_dir=app_config.cache_migrations_dir,
        persistent_migrations_dir=app_config.persistent_migrations_dir,
    )


def create_client(env: Environment, database: DatabaseManager) -> ClientFacade:
    """Instantiate the Discord client and the handler machinery around it."""
    return ClientFacade(
        config=app_config,
        database=database,
        dev_guild_id=env.dev_guild_id,
        development=env.development,
    )


def install_signal_handlers(control: ConsoleControl) -> None:
    """Turn SIGINT/SIGTERM into a graceful shutdown."""
    loop = asyncio.get_running_loop()

    def request_shutdown(signame: str) -> None:
        logger.info("Received %s, shutting down", signame)
        control.request_shutdown()
        loop.create_task(close_client(control.client))

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown, sig.name)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handlers are not supported on this platform")


async def run_bot_session(client: ClientFacade, token: str, control: ConsoleControl) -> int:
    """Run the bot alongside the console, returning an exit code."""
    control.set_client(client)
    exit_code = 0

    try:
        async with console_session(control):
            try:
                await client.start(token)
            except asyncio.CancelledError:
                logger.info("Bot start cancelled; proceeding to shutdown")
            except Exception as exc:
                logger.critical("Discord bot runtime error: %s", exc)
                exit_code = 1
    finally:
        control.set_client(None)
        await client.stop()
        logger.info("Shutdown complete.")

    return exit_code


async def async_main() -> int:
    """Bootstrap the databases, handlers and console, returning an exit code.

    Returns
    -------
    int
        Process exit code reflecting success or failure of initialization.
    """
    env = load_environment()
    database = create_database(env)

    try:
        logger.info("Initializing databases...")
        await database.initialize()
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    try:
        client = create_client(env, database)
        await client.load_components()
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await database.shutdown()
        return 1

    control = ConsoleControl()
    install_signal_handlers(control)
    exit_code = await run_bot_session(client, env.token, control)

    if control.is_restart_requested():
        logger.info("Restart requested, returning exit code %d to trigger restart", RESTART_EXIT_CODE)
        return RESTART_EXIT_CODE

    return exit_code


def main() -> int:
    """Entrypoint that orchestrates the async runtime and returns the process code.

    Returns
    -------
    int
        Exit code propagated to the operating system. Returns 42 to trigger a restart.
    """
    logger.info("Starting Lucy Bot…")
    try:
        exit_code = asyncio.run(async_main())

        if exit_code == RESTART_EXIT_CODE:
            logger.info("Restart requested; replacing current process with new instance.")
            # execv keeps stdin/stdout attached so the console survives the restart
            os.execv(sys.executable, [sys.executable] + sys.argv)
            return 0  # pragma: no cover

        return exit_code
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        if code is None:
            return 1
        try:
            return int(code)
        except (ValueError, TypeError):
            logger.warning("SystemExit.code is not an int (%r); defaulting to 1", code)
            return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
