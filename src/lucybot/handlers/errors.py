"""
Exceptions raised by the handler registry, loader and dispatch router.

Gate rejections (cooldown, permissions) are not exceptions; the router reports
them through :class:`lucybot.handlers.router.DispatchOutcome`.
"""

from __future__ import annotations

from pathlib import Path


class LucyBotError(Exception):
    """Base class for every error raised by Lucy Bot itself."""


class ValidationError(LucyBotError):
    """A handler does not have the required shape and was not registered."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"Invalid field '{field}': {message}")
        self.field = field


class DuplicateNameError(LucyBotError):
    """A handler with the same name is already registered."""

    def __init__(self, name: str, kind: str = "handler") -> None:
        super().__init__(f"{kind.capitalize()} '{name}' is already registered")
        self.name = name
        self.kind = kind


class NotFoundError(LucyBotError):
    """The named handler is not registered, or has no recorded source path."""

    def __init__(self, name: str, detail: str = "is not registered") -> None:
        super().__init__(f"'{name}' {detail}")
        self.name = name


class HandlerDirectoryError(LucyBotError, OSError):
    """A handler directory is missing or is not a directory."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Handler directory {path} not found")
        self.path = path


class HandlerLoadError(LucyBotError):
    """A handler file could not be imported."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Could not load handler from {path}: {reason}")
        self.path = path


class HandlerExecutionError(LucyBotError):
    """A handler raised while executing. The original error is the ``__cause__``."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Handler '{name}' failed while executing")
        self.name = name


class ResponseStateError(LucyBotError):
    """An interaction response was sent out of order."""
