"""
Filesystem adapter that turns handler files into handler values.

Each handler file is a Python module exporting ``handler`` (commands and
events) or ``plugin`` (plugin modules). The export is either a class, which is
instantiated with no arguments, or an already-built object. Files and
directories whose name starts with ``.`` or ``_`` are skipped, which also keeps
``__init__.py`` and ``__pycache__`` out of the scan.

Modules are imported under a synthetic name derived from their absolute path
and evicted from ``sys.modules`` before every import, so loading the same path
again always executes the current file contents.
"""

from __future__ import annotations

import hashlib
import importlib.machinery
import importlib.util
import inspect
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Iterator

from lucybot.handlers.errors import HandlerDirectoryError, HandlerLoadError, ValidationError

HANDLER_SUFFIX = ".py"
HIDDEN_PREFIXES = (".", "_")
MODULE_NAMESPACE = "lucybot_dynamic"


def is_handler_file(path: Path) -> bool:
    return path.is_file() and path.suffix == HANDLER_SUFFIX and not path.name.startswith(HIDDEN_PREFIXES)


def iter_handler_files(directory: Path) -> Iterator[Path]:
    """Yield handler files below ``directory`` depth-first, in name order.

    Raises:
        HandlerDirectoryError: If ``directory`` does not exist or is not a directory.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise HandlerDirectoryError(directory)

    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if entry.name.startswith(HIDDEN_PREFIXES):
            continue
        if entry.is_dir():
            yield from iter_handler_files(entry)
        elif is_handler_file(entry):
            yield entry


class SourceOnlyLoader(importlib.machinery.SourceFileLoader):
    """Compile from the file on every import, never from a cached .pyc.

    A .pyc is keyed on whole-second mtime and size, so an edit saved within
    the same second could otherwise be masked.
    """

    def get_code(self, fullname: str):
        return self.source_to_code(self.get_data(self.path), self.path)


def module_name_for(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    return f"{MODULE_NAMESPACE}.{path.stem.replace('-', '_')}_{digest}"


def evict(path: Path) -> None:
    """Forget any previous import of the module at ``path``."""
    sys.modules.pop(module_name_for(Path(path).resolve()), None)


def import_module_from_path(path: Path) -> ModuleType:
    """Import the file at ``path`` as a fresh module.

    Raises:
        HandlerLoadError: If the file is missing or raises while being imported.
    """
    path = Path(path).resolve()
    if not path.is_file():
        raise HandlerLoadError(path, "file does not exist")

    evict(path)
    name = module_name_for(path)
    spec = importlib.util.spec_from_file_location(name, path, loader=SourceOnlyLoader(name, str(path)))
    if spec is None or spec.loader is None:
        raise HandlerLoadError(path, "not an importable Python file")

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(name, None)
        raise HandlerLoadError(path, f"{type(exc).__name__}: {exc}") from exc
    return module


def resolve_export(path: Path, export: str = "handler") -> Any:
    """Import ``path`` and return its ``export``, instantiating classes.

    Raises:
        HandlerLoadError: If the module cannot be imported or its class cannot
            be instantiated.
        ValidationError: If the module does not define ``export``.
    """
    module = import_module_from_path(path)
    value = getattr(module, export, None)
    if value is None:
        raise ValidationError(export, f"{Path(path).name} does not export '{export}'")

    if inspect.isclass(value):
        try:
            value = value()
        except Exception as exc:
            raise HandlerLoadError(Path(path), f"could not instantiate {value.__name__}: {exc}") from exc
    return value
