"""
Handler descriptor shape and validation.

A handler is any object that exposes a ``name``, an ``execute`` callable and the
optional metadata listed on :class:`HandlerDescriptor`. Handler files usually
export a class with these attributes; :class:`HandlerDescriptor` covers handlers
built as plain values, for example in tests or inside plugins.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence

from lucybot.handlers.errors import ValidationError
from lucybot.handlers.permissions import is_known_permission


class HandlerKind(str, Enum):
    """The two handler shapes the registry knows about."""

    COMMAND = "command"
    EVENT = "event"


@dataclass
class HandlerDescriptor:
    """Plain-value handler.

    ``cooldown`` is in milliseconds. ``once``, ``enabled``, ``type`` and
    ``event`` only matter for events; ``options`` only for commands.
    """

    name: str
    execute: Callable[..., Any]
    description: str = ""
    category: str | None = None
    cooldown: int = 0
    permissions: list[str] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    usage: str | None = None
    examples: list[str] = field(default_factory=list)
    options: list[dict] = field(default_factory=list)
    once: bool = False
    enabled: bool = True
    type: str = "discord"
    event: str | None = None


_MISSING = object()


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_handler(handler: Any, kind: HandlerKind) -> None:
    """Check that ``handler`` has the shape required for ``kind``.

    Raises:
        ValidationError: naming the first offending field.
    """
    if handler is None or isinstance(handler, (str, bytes, int, float, bool)) or inspect.isclass(handler):
        raise ValidationError("handler", f"{kind.value} must be an object")

    name = getattr(handler, "name", _MISSING)
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name", "must be a non-empty string")

    execute = getattr(handler, "execute", _MISSING)
    if execute is _MISSING or not callable(execute):
        raise ValidationError("execute", "must be callable")

    description = getattr(handler, "description", _MISSING)
    if kind is HandlerKind.COMMAND:
        if not isinstance(description, str) or not description:
            raise ValidationError("description", "must be a non-empty string")
    elif description not in (_MISSING, None) and not isinstance(description, str):
        raise ValidationError("description", "must be a string")

    for attr in ("cooldown", "cooldown_ms"):
        value = getattr(handler, attr, None)
        if value is None:
            continue
        if not _is_number(value) or value < 0:
            raise ValidationError(attr, "must be a non-negative number")

    permissions = getattr(handler, "permissions", None)
    if permissions is not None:
        if not _is_sequence(permissions):
            raise ValidationError("permissions", "must be a list")
        if not all(isinstance(permission, str) and permission for permission in permissions):
            raise ValidationError("permissions", "must contain permission names")
        unknown = [permission for permission in permissions if not is_known_permission(permission)]
        if unknown:
            raise ValidationError("permissions", f"unknown permission(s): {', '.join(unknown)}")

    category = getattr(handler, "category", None)
    if category is not None and not isinstance(category, str):
        raise ValidationError("category", "must be a string")

    aliases = getattr(handler, "aliases", None)
    if aliases is not None:
        if not _is_sequence(aliases) or not all(isinstance(alias, str) for alias in aliases):
            raise ValidationError("aliases", "must be a list of strings")

    for attr in ("once", "enabled"):
        value = getattr(handler, attr, None)
        if value is not None and not isinstance(value, bool):
            raise ValidationError(attr, "must be a boolean")

    if kind is HandlerKind.EVENT:
        event_type = getattr(handler, "type", None)
        if event_type is not None and not isinstance(event_type, str):
            raise ValidationError("type", "must be a string")
        listens_to = getattr(handler, "event", None)
        if listens_to is not None and (not isinstance(listens_to, str) or not listens_to):
            raise ValidationError("event", "must be a non-empty string")
    else:
        options = getattr(handler, "options", None)
        if options is not None and not (_is_sequence(options) and all(isinstance(o, dict) for o in options)):
            raise ValidationError("options", "must be a list of option mappings")


def cooldown_ms(handler: Any) -> int:
    """Return the configured cooldown in milliseconds, 0 when there is none."""
    value = getattr(handler, "cooldown_ms", None)
    if value is None:
        value = getattr(handler, "cooldown", None)
    return int(value or 0)


def event_name(handler: Any) -> str:
    """Name of the source event an event handler listens to.

    Defaults to the handler name; set ``event`` to register several handlers
    for the same source event under different names.
    """
    return getattr(handler, "event", None) or handler.name


def required_permissions(handler: Any) -> Sequence[str]:
    return tuple(getattr(handler, "permissions", None) or ())


def aliases_of(handler: Any) -> Sequence[str]:
    return tuple(getattr(handler, "aliases", None) or ())


async def invoke(execute: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call a handler's ``execute``, awaiting the result when it is awaitable."""
    result = execute(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
