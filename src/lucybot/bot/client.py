"""
The running bot: one py-cord client wired to the handler registries.

:class:`ClientFacade` owns the shared :class:`HandlerTable` and everything that
reads or writes it (command and event registries, plugin loader, cooldown
tracker, dispatch router). Slash commands are declared to Discord by
:meth:`ClientFacade.sync_application_commands` from the command registry, and
every inbound interaction is handed to the router through ``on_interaction``.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import discord

from lucybot.configuration.app_configuration import AppConfig
from lucybot.database.database import DatabaseManager
from lucybot.handlers.cooldowns import CooldownTracker
from lucybot.handlers.errors import HandlerExecutionError
from lucybot.handlers.interaction import InteractionContext
from lucybot.handlers.permissions import permissions_value
from lucybot.handlers.plugins import PluginLoader
from lucybot.handlers.registry import CommandRegistry, EventRegistry, HandlerTable
from lucybot.handlers.router import DispatchOutcome, DispatchRouter
from lucybot.util.logger import get_logger

logger = get_logger("client")

SLASH_COMMAND_TYPE = 1


def build_intents() -> discord.Intents:
    """Intents for guild, member and message events."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    intents.messages = True
    intents.message_content = True
    return intents


def listener_name(event: str) -> str:
    """py-cord stores listeners under ``on_<event>``."""
    return event if event.startswith("on_") else f"on_{event}"


class DiscordEventSource:
    """Attach event shims to a ``discord.Bot``.

    Every listener receives the gateway event's own arguments followed by the
    facade, so an event handler's ``execute`` can reach the client and its
    services (``ready`` gets only the facade).
    """

    def __init__(self, bot: discord.Bot, facade: Any) -> None:
        self.bot = bot
        self.facade = facade
        self._listeners: Dict[Tuple[Callable[..., Any], str], Callable[..., Any]] = {}

    def add_listener(self, func: Callable[..., Any], name: str) -> None:
        async def listener(*args: Any) -> None:
            await func(*args, self.facade)

        listener.__name__ = getattr(func, "__name__", listener_name(name))
        self._listeners[(func, name)] = listener
        self.bot.add_listener(listener, listener_name(name))

    def remove_listener(self, func: Callable[..., Any], name: str) -> None:
        listener = self._listeners.pop((func, name), None)
        if listener is not None:
            self.bot.remove_listener(listener, listener_name(name))


class ClientFacade:
    """
    Owns the py-cord client and the handler machinery around it.

    Args:
        config: Application configuration (handler directories, messages).
        database: Optional database manager, exposed to handlers as ``context.services.database``.
        dev_guild_id: Guild that receives slash commands in development mode.
        development: Sync commands to ``dev_guild_id`` instead of globally.
        bot: Pre-built client, mainly for tests.
        cooldowns: Pre-built tracker, mainly for tests.
    """

    def __init__(
        self,
        config: AppConfig,
        database: Optional[DatabaseManager] = None,
        dev_guild_id: Optional[int] = None,
        development: bool = False,
        bot: Optional[discord.Bot] = None,
        cooldowns: Optional[CooldownTracker] = None,
    ) -> None:
        self.config = config
        self.database = database
        self.dev_guild_id = dev_guild_id
        self.development = development

        self.bot = bot if bot is not None else discord.Bot(intents=build_intents(), auto_sync_commands=False)
        self.table = HandlerTable()
        self.cooldowns = cooldowns or CooldownTracker()
        self.event_source = DiscordEventSource(self.bot, self)

        self.commands = CommandRegistry(self.table)
        self.events = EventRegistry(self.table, self.event_source, on_failure=self.record_failure)
        self.plugins = PluginLoader(self.table, self.commands, self.events, client=self)
        self.router = DispatchRouter(
            self.table, self.cooldowns, config.router_messages, on_failure=self.record_failure
        )

        self._pending: Set[asyncio.Task] = set()
        self._loaded = False
        self.bot.add_listener(self.on_interaction, "on_interaction")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_components(self) -> None:
        """Load commands, events and plugins from the configured directories.

        Raises:
            HandlerDirectoryError: If the commands or events directory is missing.
        """
        self.commands.load_from_directory(self.config.commands_dir)
        self.events.load_from_directory(self.config.events_dir)

        plugins_dir = self.config.plugins_dir
        if plugins_dir is not None:
            await self.plugins.load_from_directory(plugins_dir)

        self._loaded = True

        logger.info(
            "[CLIENT] Components loaded: %d commands, %d events, %d plugins",
            len(self.table.commands), len(self.table.events), len(self.table.plugins),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self.bot.is_ready()

    @property
    def user(self) -> Optional[discord.ClientUser]:
        return self.bot.user

    @property
    def latency(self) -> float:
        return self.bot.latency

    async def start(self, token: str) -> None:
        """Initialize the databases, load every handler and connect to Discord."""
        if self.database is not None and not self.database.is_initialized:
            await self.database.initialize()
        if not self._loaded:
            await self.load_components()

        logger.info("[CLIENT] Connecting to Discord...")
        await self.bot.start(token)

    async def stop(self) -> None:
        """Unload plugins, drop cooldowns, close the connection and the databases."""
        try:
            await self.plugins.unload_all()
        except Exception as exc:
            logger.error("[CLIENT] Error while unloading plugins: %s", exc)

        self.cooldowns.clear()

        if not self.bot.is_closed():
            try:
                await self.bot.close()
                logger.info("[CLIENT] Discord connection closed")
            except Exception as exc:
                logger.exception("[CLIENT] Error while closing Discord client: %s", exc)

        for task in list(self._pending):
            task.cancel()

        if self.database is not None:
            await self.database.shutdown()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def on_interaction(self, interaction: discord.Interaction) -> DispatchOutcome:
        context = InteractionContext(interaction, services=self)
        return await self.router.dispatch(context)

    def record_failure(self, error: HandlerExecutionError) -> None:
        """Keep a copy of a handler failure in the cache database's ``temp_logs``."""
        if self.database is None or not self.database.cache.is_connected:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        data = {"handler": error.name, "cause": repr(error.__cause__)}
        task = loop.create_task(self._store_failure(str(error), data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _store_failure(self, message: str, data: Dict[str, Any]) -> None:
        try:
            await self.database.cache.log_event("error", message, data)
        except Exception as exc:
            logger.warning("[CLIENT] Could not store handler failure: %s", exc)

    # ------------------------------------------------------------------
    # Slash command sync
    # ------------------------------------------------------------------

    def build_command_payloads(self) -> List[Dict[str, Any]]:
        """Slash command definitions for every registered command."""
        payloads = []
        for command in self.table.commands.values():
            payload: Dict[str, Any] = {
                "name": command.name,
                "description": command.description,
                "type": SLASH_COMMAND_TYPE,
                "options": list(getattr(command, "options", None) or []),
            }
            value = permissions_value(getattr(command, "permissions", None) or [])
            if value is not None:
                payload["default_member_permissions"] = str(value)
            payloads.append(payload)
        return payloads

    async def _upsert_commands(self, payloads: List[Dict[str, Any]]) -> bool:
        application_id = self.bot.application_id or (self.bot.user.id if self.bot.user else None)
        if application_id is None:
            logger.warning("[CLIENT] Cannot sync commands before the application ID is known")
            return False

        try:
            if self.development and self.dev_guild_id:
                await self.bot.http.bulk_upsert_guild_commands(application_id, self.dev_guild_id, payloads)
                scope = f"guild {self.dev_guild_id}"
            else:
                await self.bot.http.bulk_upsert_global_commands(application_id, payloads)
                scope = "global"
        except discord.HTTPException as exc:
            logger.error("[CLIENT] Slash command sync failed: %s", exc)
            return False

        logger.info("[CLIENT] Synced %d slash commands (%s)", len(payloads), scope)
        return True

    async def sync_application_commands(self) -> bool:
        """Declare every registered command to Discord. Failures are logged."""
        return await self._upsert_commands(self.build_command_payloads())

    async def clear_application_commands(self) -> bool:
        """Remove every slash command from the sync scope."""
        return await self._upsert_commands([])

    # ------------------------------------------------------------------
    # Hot reload
    # ------------------------------------------------------------------

    async def reload_command(self, name: str) -> Any:
        """Reload a command from its file, re-syncing slash commands when connected."""
        command = self.commands.reload(name)
        if self.is_ready:
            await self.sync_application_commands()
        return command

    def reload_event(self, name: str) -> Any:
        return self.events.reload(name)

    def source_of(self, name: str) -> Optional[Path]:
        return self.commands.path_of(name) or self.events.path_of(name)
