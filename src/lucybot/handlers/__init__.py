"""
Handler loading and dispatch core.

- **descriptor.py**: the handler shape and its validation rules.
- **loader.py**: turns handler files on disk into handler values.
- **registry.py**: command and event registries sharing one ``HandlerTable``;
  events are attached to the event source through error-isolating shims.
- **plugins.py**: plugin bundles of commands and events with init/destroy hooks.
- **cooldowns.py**: per-(command, user) cooldown ledger with timed expiry.
- **router.py**: resolves an interaction to its command, applies the cooldown
  and permission gates and isolates handler failures.
- **interaction.py**: the py-cord interaction adapter handlers receive.
"""

from lucybot.handlers.cooldowns import CooldownTracker
from lucybot.handlers.descriptor import HandlerDescriptor, HandlerKind
from lucybot.handlers.errors import (
    DuplicateNameError,
    HandlerDirectoryError,
    HandlerExecutionError,
    HandlerLoadError,
    LucyBotError,
    NotFoundError,
    ResponseStateError,
    ValidationError,
)
from lucybot.handlers.plugins import LoadedModuleRecord, PluginLoader
from lucybot.handlers.registry import CommandRegistry, EventRegistry, HandlerRegistry, HandlerTable
from lucybot.handlers.router import DispatchOutcome, DispatchRouter, RouterMessages

__all__ = [
    "CommandRegistry",
    "CooldownTracker",
    "DispatchOutcome",
    "DispatchRouter",
    "DuplicateNameError",
    "EventRegistry",
    "HandlerDescriptor",
    "HandlerDirectoryError",
    "HandlerExecutionError",
    "HandlerKind",
    "HandlerLoadError",
    "HandlerRegistry",
    "HandlerTable",
    "LoadedModuleRecord",
    "LucyBotError",
    "NotFoundError",
    "PluginLoader",
    "ResponseStateError",
    "RouterMessages",
    "ValidationError",
]
