"""
Plugin modules: named bundles of commands and events with lifecycle hooks.

A plugin file exports ``plugin``, a class or object with ``name`` and
``version`` strings, optional ``commands`` and ``events`` lists of handlers, and
optional ``init(client)`` / ``destroy(client)`` hooks (sync or async). Loading a
plugin registers everything it carries through the command and event
registries; unloading removes exactly those registrations. A plugin handler
whose name is already registered, command or event, is refused.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from lucybot.handlers import loader
from lucybot.handlers.descriptor import invoke
from lucybot.handlers.errors import DuplicateNameError, NotFoundError, ValidationError
from lucybot.handlers.registry import CommandRegistry, EventRegistry, HandlerTable
from lucybot.util.logger import get_logger

logger = get_logger("plugin_loader")


@dataclass
class LoadedModuleRecord:
    """Bookkeeping for one loaded plugin, dropped on unload or reload."""

    instance: Any
    source_path: Optional[Path] = None
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    commands: List[str] = field(default_factory=list)
    events: List[str] = field(default_factory=list)


def validate_plugin(plugin: Any) -> None:
    """Raise :class:`ValidationError` when ``plugin`` has the wrong shape."""
    if plugin is None or isinstance(plugin, (str, bytes, int, float, bool)):
        raise ValidationError("plugin", "must be an object")

    for attr in ("name", "version"):
        value = getattr(plugin, attr, None)
        if not isinstance(value, str) or not value:
            raise ValidationError(attr, "must be a non-empty string")

    for attr in ("commands", "events"):
        value = getattr(plugin, attr, None)
        if value is not None and not isinstance(value, (list, tuple)):
            raise ValidationError(attr, "must be a list")

    for attr in ("init", "destroy"):
        value = getattr(plugin, attr, None)
        if value is not None and not callable(value):
            raise ValidationError(attr, "must be callable")


class PluginLoader:
    """Load, unload and reload plugins against the two registries.

    Parameters
    ----------
    table:
        Shared handler table; loaded plugins are listed in ``table.plugins``.
    commands, events:
        Registries that receive the plugin's handlers.
    client:
        Passed to the plugin's ``init`` and ``destroy`` hooks.
    """

    def __init__(
        self,
        table: HandlerTable,
        commands: CommandRegistry,
        events: EventRegistry,
        client: Any = None,
    ) -> None:
        self.table = table
        self.commands = commands
        self.events = events
        self.client = client
        self._records: Dict[str, LoadedModuleRecord] = {}

    async def load_from_directory(self, directory: Path | str) -> List[Any]:
        """Load every plugin file below ``directory``, skipping broken ones.

        Raises:
            HandlerDirectoryError: If ``directory`` is missing.
        """
        loaded: List[Any] = []
        for path in loader.iter_handler_files(Path(directory)):
            try:
                loaded.append(await self.load_one(path))
            except Exception as exc:
                logger.error("[PLUGINS] Failed to load plugin %s: %s", path.name, exc)

        logger.info("[PLUGINS] Loaded %d plugins from %s", len(loaded), directory)
        return loaded

    async def load_one(self, path: Path | str) -> Any:
        path = Path(path).resolve()
        plugin = loader.resolve_export(path, export="plugin")
        return await self.load(plugin, source_path=path)

    async def load(self, plugin: Any, source_path: Path | None = None) -> Any:
        """Register a plugin value and run its ``init`` hook.

        If any handler fails to register or ``init`` raises, every handler the
        plugin already registered is removed again before the error propagates.
        """
        validate_plugin(plugin)
        if plugin.name in self._records:
            raise DuplicateNameError(plugin.name, "plugin")

        record = LoadedModuleRecord(instance=plugin, source_path=source_path)
        try:
            for command in getattr(plugin, "commands", None) or []:
                self.commands.register(command)
                record.commands.append(command.name)
            for event in getattr(plugin, "events", None) or []:
                # Plugins only add events, they never replace a registered one
                if getattr(event, "name", None) in self.events:
                    raise DuplicateNameError(event.name, "event")
                self.events.register(event)
                record.events.append(event.name)

            init = getattr(plugin, "init", None)
            if init is not None:
                await invoke(init, self.client)
        except Exception:
            self._rollback(record)
            raise

        self._records[plugin.name] = record
        self.table.plugins[plugin.name] = plugin
        logger.info(
            "[PLUGINS] Loaded plugin '%s' v%s (%d commands, %d events)",
            plugin.name, plugin.version, len(record.commands), len(record.events),
        )
        return plugin

    def _rollback(self, record: LoadedModuleRecord) -> None:
        for name in record.commands:
            if name in self.commands:
                self.commands.unregister(name)
        for name in record.events:
            if name in self.events:
                self.events.unregister(name)

    async def unload(self, name: str) -> LoadedModuleRecord:
        """Run the ``destroy`` hook and remove the plugin's handlers.

        A failing ``destroy`` is logged; the handlers are removed regardless.

        Raises:
            NotFoundError: If no plugin called ``name`` is loaded.
        """
        record = self._records.get(name)
        if record is None:
            raise NotFoundError(name, "is not a loaded plugin")

        destroy = getattr(record.instance, "destroy", None)
        if destroy is not None:
            try:
                await invoke(destroy, self.client)
            except Exception as exc:
                logger.error("[PLUGINS] destroy() of plugin '%s' failed: %s", name, exc)

        self._rollback(record)
        del self._records[name]
        self.table.plugins.pop(name, None)
        logger.info("[PLUGINS] Unloaded plugin '%s'", name)
        return record

    async def reload(self, name: str) -> Any:
        """Unload ``name`` and load it again from the file it came from.

        Raises:
            NotFoundError: If the plugin is not loaded or was not loaded from a file.
        """
        record = self._records.get(name)
        if record is None:
            raise NotFoundError(name, "is not a loaded plugin")
        if record.source_path is None:
            raise NotFoundError(name, "has no recorded source path")

        candidate = loader.resolve_export(record.source_path, export="plugin")
        validate_plugin(candidate)

        await self.unload(name)
        return await self.load(candidate, source_path=record.source_path)

    async def unload_all(self) -> None:
        for name in list(self._records):
            await self.unload(name)

    def names(self) -> List[str]:
        return list(self._records)

    def record(self, name: str) -> Optional[LoadedModuleRecord]:
        return self._records.get(name)
