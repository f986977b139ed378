"""
Discovery of ``.sql`` migration files.

Both stores apply pending migrations in file-name order and record each applied
file name in their ``_migrations`` table, so a migration runs at most once.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Tuple

from lucybot.util.logger import get_logger

logger = get_logger("database_migrations")


def migration_files(directory: Path) -> List[Path]:
    """Return the ``.sql`` files in ``directory`` sorted by name.

    A missing directory is created and yields no migrations.
    """
    if not directory.is_dir():
        logger.info("[MIGRATIONS] Directory %s not found, creating it", directory)
        directory.mkdir(parents=True, exist_ok=True)
        return []
    return sorted(path for path in directory.iterdir() if path.is_file() and path.suffix == ".sql")


def pending(files: Iterable[Path], applied: Iterable[str]) -> List[Tuple[str, str]]:
    """Return ``(name, sql)`` for every file whose name is not in ``applied``."""
    done = set(applied)
    result = []
    for path in files:
        if path.name in done:
            logger.debug("[MIGRATIONS] %s already applied", path.name)
            continue
        result.append((path.name, path.read_text(encoding="utf-8")))
    return result
