"""
Command and event registries.

:class:`HandlerTable` holds the maps shared with the rest of the bot; the
dispatch router reads ``table.commands`` and never writes to it. The registries
are the only writers:

- :class:`CommandRegistry` rejects duplicate names outright.
- :class:`EventRegistry` replaces an existing event of the same name (with a
  warning) and attaches every event to the event source through an
  error-isolating shim. The shim, not the raw ``execute``, is what gets
  attached and detached, so it is stored per event name.

Every mutating method is synchronous, so a registration can never be observed
half done by a coroutine running in between.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Coroutine, Dict, List, Optional, Protocol

from lucybot.handlers import loader
from lucybot.handlers.descriptor import (
    HandlerKind,
    aliases_of,
    cooldown_ms,
    event_name,
    invoke,
    required_permissions,
    validate_handler,
)
from lucybot.handlers.errors import (
    DuplicateNameError,
    HandlerExecutionError,
    NotFoundError,
)
from lucybot.util.logger import get_logger

logger = get_logger("handler_registry")

Listener = Callable[..., Coroutine[Any, Any, None]]
FailureReporter = Callable[[HandlerExecutionError], Any]

# Relevance weights used by search(), best matching field wins
NAME_WEIGHT = 10
ALIAS_WEIGHT = 8
DESCRIPTION_WEIGHT = 5
CATEGORY_WEIGHT = 3


class EventSource(Protocol):
    """Anything listeners can be attached to and detached from by reference."""

    def add_listener(self, func: Listener, name: str) -> None: ...

    def remove_listener(self, func: Listener, name: str) -> None: ...


@dataclass
class HandlerTable:
    """Maps shared by the registries, the plugin loader and the router."""

    commands: Dict[str, Any] = field(default_factory=dict)
    events: Dict[str, Any] = field(default_factory=dict)
    plugins: Dict[str, Any] = field(default_factory=dict)

    def clear(self) -> None:
        self.commands.clear()
        self.events.clear()
        self.plugins.clear()


class HandlerRegistry:
    """Registration, loading and reloading shared by both handler kinds."""

    kind: HandlerKind = HandlerKind.COMMAND
    log_tag: str = "[REGISTRY]"

    def __init__(self, table: HandlerTable) -> None:
        self.table = table
        self._handlers: Dict[str, Any] = {}
        self._paths: Dict[str, Path] = {}

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @property
    def shared(self) -> Dict[str, Any]:
        """The client-facing map this registry mirrors its entries into."""
        raise NotImplementedError

    def _on_duplicate(self, handler: Any) -> None:
        raise DuplicateNameError(handler.name, self.kind.value)

    def _on_register(self, handler: Any) -> None:
        pass

    def _on_unregister(self, name: str) -> None:
        pass

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_from_directory(self, directory: Path | str) -> List[Any]:
        """Load every handler file below ``directory``.

        A file that fails to load is logged and skipped; the rest of the scan
        continues.

        Raises:
            HandlerDirectoryError: If ``directory`` is missing.
        """
        directory = Path(directory)
        loaded: List[Any] = []
        for path in loader.iter_handler_files(directory):
            try:
                loaded.append(self.load_one(path))
            except Exception as exc:
                logger.error("%s Failed to load %s %s: %s", self.log_tag, self.kind.value, path.name, exc)

        logger.info("%s Loaded %d %ss from %s", self.log_tag, len(loaded), self.kind.value, directory)
        return loaded

    def load_one(self, path: Path | str) -> Any:
        """Import, validate and register the handler exported by ``path``.

        Raises:
            HandlerLoadError: If the file cannot be imported.
            ValidationError: If the export has an invalid shape.
            DuplicateNameError: If a command with the same name is registered.
        """
        path = Path(path).resolve()
        handler = loader.resolve_export(path)
        self.register(handler)
        self._paths[handler.name] = path
        return handler

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def validate(self, handler: Any) -> None:
        validate_handler(handler, self.kind)

    def register(self, handler: Any) -> Any:
        """Validate and register an already-built handler value."""
        self.validate(handler)

        if handler.name in self._handlers:
            self._on_duplicate(handler)

        self._handlers[handler.name] = handler
        self.shared[handler.name] = handler
        self._on_register(handler)

        logger.debug("%s Registered %s '%s'", self.log_tag, self.kind.value, handler.name)
        return handler

    def unregister(self, name: str) -> Any:
        """Remove ``name`` from this registry and from the shared map.

        Raises:
            NotFoundError: If ``name`` is not registered.
        """
        if name not in self._handlers:
            raise NotFoundError(name)

        self._on_unregister(name)
        handler = self._handlers.pop(name)
        self.shared.pop(name, None)
        self._paths.pop(name, None)

        logger.debug("%s Unregistered %s '%s'", self.log_tag, self.kind.value, name)
        return handler

    def reload(self, name: str) -> Any:
        """Re-import the file ``name`` was loaded from and swap it in.

        The new content is imported and validated before the current
        registration is dropped, so a broken file leaves the old handler
        active.

        Raises:
            NotFoundError: If ``name`` was not loaded from a file.
            HandlerLoadError, ValidationError: If the new content is unusable.
            DuplicateNameError: If the new content renamed the command to a
                name that is already taken.
        """
        path = self._paths.get(name)
        if path is None:
            raise NotFoundError(name, "has no recorded source path")

        candidate = loader.resolve_export(path)
        self.validate(candidate)
        if candidate.name != name and candidate.name in self._handlers and self.kind is HandlerKind.COMMAND:
            raise DuplicateNameError(candidate.name, self.kind.value)

        self.unregister(name)
        self.register(candidate)
        self._paths[candidate.name] = path

        logger.info("%s Reloaded %s '%s' from %s", self.log_tag, self.kind.value, name, path)
        return candidate

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, name: str) -> Optional[Any]:
        return self._handlers.get(name)

    def names(self) -> List[str]:
        return list(self._handlers)

    def path_of(self, name: str) -> Optional[Path]:
        return self._paths.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def search(self, query: str) -> List[Any]:
        """Case-insensitive substring search ranked by the field that matched.

        Name matches rank above alias matches, then description, then
        category. Equal ranks keep registration order.
        """
        needle = query.lower()
        scored = []
        for handler in self._handlers.values():
            weight = _relevance(handler, needle)
            if weight:
                scored.append((weight, handler))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [handler for _, handler in scored]


def _relevance(handler: Any, needle: str) -> int:
    if needle in handler.name.lower():
        return NAME_WEIGHT
    if any(needle in alias.lower() for alias in aliases_of(handler)):
        return ALIAS_WEIGHT
    description = getattr(handler, "description", None)
    if description and needle in description.lower():
        return DESCRIPTION_WEIGHT
    category = getattr(handler, "category", None)
    if category and needle in category.lower():
        return CATEGORY_WEIGHT
    return 0


class CommandRegistry(HandlerRegistry):
    """Registry of slash-command handlers with strict name uniqueness."""

    kind = HandlerKind.COMMAND
    log_tag = "[COMMAND REGISTRY]"

    @property
    def shared(self) -> Dict[str, Any]:
        return self.table.commands

    def by_category(self, category: str) -> List[Any]:
        return [c for c in self._handlers.values() if getattr(c, "category", None) == category]

    def info(self) -> Dict[str, Dict[str, Any]]:
        """Summaries of every command with the documented defaults filled in."""
        return {
            name: {
                "description": command.description,
                "category": getattr(command, "category", None) or "general",
                "cooldown": cooldown_ms(command),
                "permissions": list(required_permissions(command)),
                "usage": getattr(command, "usage", None) or f"/{name}",
                "examples": list(getattr(command, "examples", None) or []),
            }
            for name, command in self._handlers.items()
        }


class EventRegistry(HandlerRegistry):
    """Registry of event handlers attached to an :class:`EventSource`.

    Re-registering a name replaces the previous event. Events declaring
    ``once = True`` detach themselves after their first delivery but stay
    registered, so they can be re-enabled or reloaded.
    """

    kind = HandlerKind.EVENT
    log_tag = "[EVENT REGISTRY]"

    def __init__(
        self,
        table: HandlerTable,
        source: EventSource,
        on_failure: FailureReporter | None = None,
    ) -> None:
        super().__init__(table)
        self.source = source
        self.on_failure = on_failure
        self._shims: Dict[str, Listener] = {}
        self._event_names: Dict[str, str] = {}
        self._attached: set[str] = set()

    @property
    def shared(self) -> Dict[str, Any]:
        return self.table.events

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _on_duplicate(self, handler: Any) -> None:
        logger.warning("%s Event '%s' is already registered, replacing it", self.log_tag, handler.name)
        path = self._paths.get(handler.name)
        self.unregister(handler.name)
        if path is not None:
            self._paths[handler.name] = path

    def _on_register(self, handler: Any) -> None:
        self._shims[handler.name] = self._make_shim(handler)
        self._event_names[handler.name] = event_name(handler)
        if getattr(handler, "enabled", True) is not False:
            self._attach(handler.name)

    def _on_unregister(self, name: str) -> None:
        self._detach(name)
        self._shims.pop(name, None)
        self._event_names.pop(name, None)

    # ------------------------------------------------------------------
    # Shims
    # ------------------------------------------------------------------

    def _make_shim(self, handler: Any) -> Listener:
        name = handler.name
        once = bool(getattr(handler, "once", False))

        async def shim(*args: Any, **kwargs: Any) -> None:
            if once:
                self._detach(name)
            try:
                await invoke(handler.execute, *args, **kwargs)
            except Exception as exc:
                error = HandlerExecutionError(name)
                error.__cause__ = exc
                logger.error("%s %s: %s", self.log_tag, error, exc, exc_info=exc)
                self._report(error)

        shim.__name__ = f"on_{name}"
        return shim

    def _report(self, error: HandlerExecutionError) -> None:
        if self.on_failure is None:
            return
        try:
            self.on_failure(error)
        except Exception as exc:
            logger.error("%s Failure reporter raised: %s", self.log_tag, exc)

    def _attach(self, name: str) -> None:
        if name in self._attached:
            return
        self.source.add_listener(self._shims[name], self._event_names[name])
        self._attached.add(name)

    def _detach(self, name: str) -> None:
        if name not in self._attached:
            return
        self.source.remove_listener(self._shims[name], self._event_names[name])
        self._attached.discard(name)

    def shim_for(self, name: str) -> Optional[Listener]:
        return self._shims.get(name)

    def is_attached(self, name: str) -> bool:
        return name in self._attached

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    def enable(self, name: str) -> None:
        event = self._handlers.get(name)
        if event is None:
            raise NotFoundError(name)
        # A fired once-event is still enabled but detached, so attach either way
        if getattr(event, "enabled", True) is False or name not in self._attached:
            event.enabled = True
            self._attach(name)
            logger.info("%s Event '%s' enabled", self.log_tag, name)

    def disable(self, name: str) -> None:
        event = self._handlers.get(name)
        if event is None:
            raise NotFoundError(name)
        if getattr(event, "enabled", True) is not False:
            event.enabled = False
            self._detach(name)
            logger.info("%s Event '%s' disabled", self.log_tag, name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def by_type(self, event_type: str) -> List[Any]:
        return [e for e in self._handlers.values() if (getattr(e, "type", None) or "discord") == event_type]

    def info(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                "description": getattr(event, "description", None) or "No description",
                "once": bool(getattr(event, "once", False)),
                "type": getattr(event, "type", None) or "discord",
                "event": event_name(event),
                "enabled": getattr(event, "enabled", True) is not False,
                "attached": name in self._attached,
            }
            for name, event in self._handlers.items()
        }
