"""Interactive console for managing the live bot and its handlers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession

from lucybot.handlers.errors import LucyBotError
from lucybot.util.discord_utils import format_bytes
from lucybot.util.logger import get_logger

if TYPE_CHECKING:
    from lucybot.bot.client import ClientFacade

# Box drawing helpers for aligned console output
BOX_WIDTH = 45

def box_title(title: str) -> list[str]:
    inner_width = BOX_WIDTH - 2
    pad_left = (inner_width - len(title)) // 2
    pad_right = inner_width - len(title) - pad_left
    return [
        f"╔{'═' * inner_width}╗",
        f"║{' ' * pad_left}{title}{' ' * pad_right}║",
        f"╚{'═' * inner_width}╝"
    ]

logger = get_logger("console")

# Type alias for command handler functions
CommandHandler = Callable[["ConsoleControl", list[str]], Awaitable[None]]


@dataclass
class Command:
    """Definition of a console command."""
    name: str
    handler: CommandHandler
    aliases: list[str]
    description: str
    usage: str = ""

    def matches(self, input_cmd: str) -> bool:
        """Check if input matches this command or any alias."""
        return input_cmd == self.name or input_cmd in self.aliases


def console_print(message: str, style: str = "") -> None:
    """Render text via prompt_toolkit without breaking the active prompt."""
    formatted: FormattedText | str
    if style:
        formatted = FormattedText([(style, message)])
    else:
        formatted = message
    print_formatted_text(formatted)


def print_title(title: str, style: str = "ansiblue") -> None:
    for line in box_title(title):
        console_print(line, style)


class ConsoleControl:
    """Manage console-driven lifecycle controls for the running bot."""

    def __init__(self) -> None:
        self.shutdown_event = asyncio.Event()
        self.restart_event = asyncio.Event()
        self._client: ClientFacade | None = None

    def set_client(self, client: ClientFacade | None) -> None:
        self._client = client

    @property
    def client(self) -> ClientFacade | None:  # pragma: no cover - trivial getter
        return self._client

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    def request_restart(self) -> None:
        self.restart_event.set()

    def stop(self) -> None:
        self.shutdown_event.set()

    def is_shutdown_requested(self) -> bool:
        return self.shutdown_event.is_set()

    def is_restart_requested(self) -> bool:
        return self.restart_event.is_set()


async def close_client(client: ClientFacade | None) -> None:
    """Close the Discord connection if it is open."""
    if client is None or client.bot.is_closed():
        return

    try:
        await client.bot.close()
        logger.info("Discord bot connection closed.")
    except Exception as exc:  # pragma: no cover - defensive logging
        logger.exception("Error while closing Discord bot: %s", exc)


async def _request_lifecycle_action(control: ConsoleControl, *, restart: bool) -> None:
    """Trigger shutdown or restart from the console, closing the bot safely."""
    if restart:
        control.request_restart()
    control.request_shutdown()
    await close_client(control.client)


def _require_client(control: ConsoleControl) -> ClientFacade | None:
    if control.client is None:
        console_print("Bot is not initialized.", "ansiyellow")
    return control.client


def _require_args(args: list[str], count: int, usage: str) -> bool:
    if len(args) < count:
        console_print(f"Usage: {usage}", "ansiyellow")
        return False
    return True


# ==================== Command Handlers ====================

async def cmd_help(control: ConsoleControl, args: list[str]) -> None:
    """Display available commands and their descriptions."""
    print_title("Console Commands Reference", "ansigreen")

    for cmd in COMMANDS:
        aliases_str = f" (aliases: {', '.join(cmd.aliases)})" if cmd.aliases else ""
        console_print(f"\n  {cmd.name}{aliases_str}", "ansicyan")
        console_print(f"    {cmd.description}")
        if cmd.usage:
            console_print(f"    Usage: {cmd.usage}", "ansibrightblack")

    console_print("")


async def cmd_status(control: ConsoleControl, args: list[str]) -> None:
    """Display connection, handler and database status."""
    print_title("Bot Status")

    client = control.client
    if client is None:
        console_print("  Bot:        🔴 Not initialized")
        console_print("")
        return

    bot = client.bot
    bot_status = "🟢 Connected" if client.is_ready and not bot.is_closed() else "🔴 Disconnected"
    console_print(f"  Bot:        {bot_status}")
    console_print(f"  Guilds:     {len(bot.guilds)}")
    if client.is_ready:
        console_print(f"  Latency:    {bot.latency * 1000:.0f}ms")
    console_print(f"  Commands:   {len(client.table.commands)}")
    console_print(f"  Events:     {len(client.table.events)}")
    console_print(f"  Plugins:    {len(client.table.plugins)}")
    console_print(f"  Cooldowns:  {len(client.cooldowns)}")

    if client.database is not None:
        stats = await client.database.stats()
        durable = "🟢 Connected" if stats.persistent_connected else "⚪ Disabled"
        console_print(f"  Durable DB: {durable}")
        if stats.cache is not None:
            console_print(
                f"  Cache DB:   {stats.cache.cache_entries} cached, {stats.cache.sessions} sessions, "
                f"{stats.cache.logs} logs ({format_bytes(stats.cache.db_size)})"
            )

    console_print("")


async def cmd_commands(control: ConsoleControl, args: list[str]) -> None:
    """List registered commands grouped by category."""
    client = _require_client(control)
    if client is None:
        return

    info = client.commands.info()
    print_title(f"Commands ({len(info)})")

    by_category: dict[str, list[str]] = {}
    for name, details in sorted(info.items()):
        by_category.setdefault(details["category"], []).append(name)

    for category, names in sorted(by_category.items()):
        console_print(f"\n  {category}", "ansicyan")
        for name in names:
            details = info[name]
            cooldown = f", cooldown {details['cooldown'] / 1000:g}s" if details["cooldown"] else ""
            perms = f", needs {', '.join(details['permissions'])}" if details["permissions"] else ""
            console_print(f"    • {details['usage']}: {details['description']}{cooldown}{perms}")

    console_print("")


async def cmd_events(control: ConsoleControl, args: list[str]) -> None:
    """List registered events with their attach state."""
    client = _require_client(control)
    if client is None:
        return

    info = client.events.info()
    print_title(f"Events ({len(info)})")

    for name, details in sorted(info.items()):
        state = "🟢 attached" if details["attached"] else ("⚪ detached" if details["enabled"] else "🔴 disabled")
        once = " [once]" if details["once"] else ""
        source = f" -> {details['event']}" if details["event"] != name else ""
        console_print(f"  • {name}{source}{once}: {state}")

    console_print("")


async def cmd_search(control: ConsoleControl, args: list[str]) -> None:
    """Search commands by name, alias, description or category."""
    client = _require_client(control)
    if client is None or not _require_args(args, 1, "search <query>"):
        return

    query = " ".join(args)
    results = client.commands.search(query)
    if not results:
        console_print(f"No commands match '{query}'.", "ansiyellow")
        return

    for command in results:
        console_print(f"  • /{command.name}: {command.description}")


async def cmd_reload(control: ConsoleControl, args: list[str]) -> None:
    """Reload a command from its source file."""
    client = _require_client(control)
    if client is None or not _require_args(args, 1, "reload <command>"):
        return

    try:
        await client.reload_command(args[0])
    except LucyBotError as exc:
        console_print(f"Reload failed: {exc}", "ansired")
        return
    console_print(f"Command '{args[0]}' reloaded.", "ansigreen")


async def cmd_reload_event(control: ConsoleControl, args: list[str]) -> None:
    """Reload an event handler from its source file."""
    client = _require_client(control)
    if client is None or not _require_args(args, 1, "reload-event <event>"):
        return

    try:
        client.reload_event(args[0])
    except LucyBotError as exc:
        console_print(f"Reload failed: {exc}", "ansired")
        return
    console_print(f"Event '{args[0]}' reloaded.", "ansigreen")


async def cmd_enable_event(control: ConsoleControl, args: list[str]) -> None:
    client = _require_client(control)
    if client is None or not _require_args(args, 1, "enable-event <event>"):
        return

    try:
        client.events.enable(args[0])
    except LucyBotError as exc:
        console_print(str(exc), "ansired")
        return
    console_print(f"Event '{args[0]}' enabled.", "ansigreen")


async def cmd_disable_event(control: ConsoleControl, args: list[str]) -> None:
    client = _require_client(control)
    if client is None or not _require_args(args, 1, "disable-event <event>"):
        return

    try:
        client.events.disable(args[0])
    except LucyBotError as exc:
        console_print(str(exc), "ansired")
        return
    console_print(f"Event '{args[0]}' disabled.", "ansigreen")


async def cmd_cooldowns(control: ConsoleControl, args: list[str]) -> None:
    """Show active cooldowns."""
    client = _require_client(control)
    if client is None:
        return

    info = client.cooldowns.info()
    if not info:
        console_print("No active cooldowns.", "ansigreen")
        return

    print_title(f"Active Cooldowns ({len(client.cooldowns)})")
    now = client.cooldowns.now()
    for command, users in sorted(info.items()):
        console_print(f"\n  /{command}", "ansicyan")
        for user_id, entry in users.items():
            remaining = max(entry["expires_at"] - now, 0) / 1000
            console_print(f"    • user {user_id}: {remaining:.1f}s left")
    console_print("")


async def cmd_clear_cooldowns(control: ConsoleControl, args: list[str]) -> None:
    """Clear cooldowns for one user or one command."""
    client = _require_client(control)
    usage = "clear-cooldowns user <id> | clear-cooldowns command <name>"
    if client is None or not _require_args(args, 2, usage):
        return

    scope, target = args[0].lower(), args[1]
    if scope == "user":
        try:
            user_id = int(target)
        except ValueError:
            console_print(f"'{target}' is not a user ID.", "ansired")
            return
        removed = client.cooldowns.clear_for_user(user_id)
    elif scope == "command":
        removed = client.cooldowns.clear_for_command(target)
    else:
        console_print(f"Usage: {usage}", "ansiyellow")
        return

    console_print(f"Removed {removed} cooldown(s).", "ansigreen")


async def cmd_sync(control: ConsoleControl, args: list[str]) -> None:
    """Push the registered commands to Discord."""
    client = _require_client(control)
    if client is None:
        return

    if await client.sync_application_commands():
        console_print("Slash commands synced.", "ansigreen")
    else:
        console_print("Slash command sync failed, see the log for details.", "ansired")


async def cmd_clear_commands(control: ConsoleControl, args: list[str]) -> None:
    """Remove every slash command from Discord."""
    client = _require_client(control)
    if client is None:
        return

    if await client.clear_application_commands():
        console_print("Slash commands cleared.", "ansigreen")
    else:
        console_print("Clearing slash commands failed, see the log for details.", "ansired")


async def cmd_cleanup(control: ConsoleControl, args: list[str]) -> None:
    """Purge expired rows from the cache database now."""
    client = _require_client(control)
    if client is None:
        return
    if client.database is None:
        console_print("No database configured.", "ansiyellow")
        return

    counts = await client.database.run_cleanup()
    if counts is None:
        console_print("Cleanup failed, see the log for details.", "ansired")
        return
    console_print(
        f"Removed {counts.cache} cache entries, {counts.settings} settings, {counts.sessions} sessions.",
        "ansigreen",
    )


async def cmd_restart(control: ConsoleControl, args: list[str]) -> None:
    """Request a full bot restart."""
    console_print("Restart requested. Bot will shut down and restart...", "ansiyellow")
    await _request_lifecycle_action(control, restart=True)


async def cmd_shutdown(control: ConsoleControl, args: list[str]) -> None:
    """Request graceful bot shutdown."""
    console_print("Shutdown requested.", "ansiyellow")
    await _request_lifecycle_action(control, restart=False)


# ==================== Command Registry ====================

COMMANDS: list[Command] = [
    Command(
        name="help",
        handler=cmd_help,
        aliases=["h", "?"],
        description="Show this help message with all available commands",
    ),
    Command(
        name="status",
        handler=cmd_status,
        aliases=["stat", "info"],
        description="Display connection, handler and database status",
    ),
    Command(
        name="commands",
        handler=cmd_commands,
        aliases=["cmds"],
        description="List registered slash commands by category",
    ),
    Command(
        name="events",
        handler=cmd_events,
        aliases=["ev"],
        description="List registered events and whether they are attached",
    ),
    Command(
        name="search",
        handler=cmd_search,
        aliases=["find"],
        description="Search commands by name, alias, description or category",
        usage="search <query>",
    ),
    Command(
        name="reload",
        handler=cmd_reload,
        aliases=["rl"],
        description="Reload a command from its file and re-sync slash commands",
        usage="reload <command>",
    ),
    Command(
        name="reload-event",
        handler=cmd_reload_event,
        aliases=["rle"],
        description="Reload an event handler from its file",
        usage="reload-event <event>",
    ),
    Command(
        name="enable-event",
        handler=cmd_enable_event,
        aliases=[],
        description="Re-attach a disabled event handler",
        usage="enable-event <event>",
    ),
    Command(
        name="disable-event",
        handler=cmd_disable_event,
        aliases=[],
        description="Detach an event handler without unregistering it",
        usage="disable-event <event>",
    ),
    Command(
        name="cooldowns",
        handler=cmd_cooldowns,
        aliases=["cd"],
        description="Show active command cooldowns",
    ),
    Command(
        name="clear-cooldowns",
        handler=cmd_clear_cooldowns,
        aliases=["ccd"],
        description="Clear cooldowns for a user or a command",
        usage="clear-cooldowns user <id> | clear-cooldowns command <name>",
    ),
    Command(
        name="sync",
        handler=cmd_sync,
        aliases=[],
        description="Push registered commands to Discord",
    ),
    Command(
        name="clear-commands",
        handler=cmd_clear_commands,
        aliases=[],
        description="Remove all slash commands from Discord",
    ),
    Command(
        name="cleanup",
        handler=cmd_cleanup,
        aliases=[],
        description="Purge expired cache, settings and session rows now",
    ),
    Command(
        name="restart",
        handler=cmd_restart,
        aliases=["reboot"],
        description="Fully restart the entire bot (useful during development)",
    ),
    Command(
        name="shutdown",
        handler=cmd_shutdown,
        aliases=["stop", "quit", "exit"],
        description="Gracefully shut down the bot",
    ),
]


# ==================== Command Dispatcher ====================

async def handle_console_command(command: str, control: ConsoleControl) -> None:
    """Interpret and execute a single console command line."""
    if not command.strip():
        return

    parts = command.strip().split()
    cmd_name = parts[0].lower()
    args = parts[1:]

    for cmd in COMMANDS:
        if cmd.matches(cmd_name):
            try:
                await cmd.handler(control, args)
            except Exception as exc:
                logger.exception("Error executing command '%s': %s", cmd_name, exc)
                console_print(f"Error executing command: {exc}", "ansired")
            return

    console_print(f"Unknown command '{cmd_name}'. Type 'help' for available commands.", "ansired")


async def run_console(control: ConsoleControl) -> None:
    """Run the interactive console until shutdown is requested."""
    session = PromptSession("> ")

    print_title("Lucy Bot Interactive Console", "ansigreen")
    console_print("Type 'help' for available commands or 'exit' to quit.\n", "ansibrightblack")

    with patch_stdout():
        while not control.is_shutdown_requested():
            try:
                line = await session.prompt_async()
                if line.strip():
                    await handle_console_command(line, control)
            except (EOFError, KeyboardInterrupt):
                console_print("\nShutdown requested by user.", "ansiyellow")
                control.request_shutdown()
                await close_client(control.client)
                break
            except Exception as exc:  # pragma: no cover - defensive logging
                logger.exception("Error in console input loop: %s", exc)
                console_print(f"Error: {exc}", "ansired")


@asynccontextmanager
async def console_session(control: ConsoleControl) -> AsyncIterator[ConsoleControl]:
    """Run the console alongside the bot, cleaning up automatically."""
    console_task = asyncio.create_task(run_console(control))
    try:
        yield control
    finally:
        control.stop()
        console_task.cancel()
        try:
            await console_task
        except asyncio.CancelledError:
            pass
