"""
Coordinator for the two bot databases.

:class:`DatabaseManager` owns the local :class:`CacheStore` and the optional
:class:`PersistentStore`, applies their migrations on start-up, and runs a
background task that purges expired cache rows on a fixed interval.

Lifecycle:
    1. ``await manager.initialize()`` at program start
    2. ``manager.get_cache()`` / ``manager.get_persistent()`` while running
    3. ``await manager.shutdown()`` at program end
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from lucybot.database.cache_store import CacheStats, CacheStore, CleanupCounts
from lucybot.database.persistent_store import PersistentStore
from lucybot.util.logger import get_logger

logger = get_logger("database")

DEFAULT_CLEANUP_INTERVAL = 3600.0


@dataclass
class DatabaseStats:
    cache: Optional[CacheStats]
    persistent_connected: bool


class DatabaseManager:
    """
    Owns both stores and the periodic cleanup task.

    Args:
        cache_path: SQLite file for the cache store.
        database_url: PostgreSQL DSN; ``None`` leaves the durable store disabled.
        cleanup_interval: Seconds between two cache cleanups.
        cache_migrations_dir, persistent_migrations_dir: Optional ``.sql``
            migration directories applied during :meth:`initialize`.
    """

    def __init__(
        self,
        cache_path: Path,
        database_url: Optional[str] = None,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        cache_migrations_dir: Optional[Path] = None,
        persistent_migrations_dir: Optional[Path] = None,
        cache: Optional[CacheStore] = None,
        persistent: Optional[PersistentStore] = None,
    ) -> None:
        self.cache = cache or CacheStore(cache_path)
        self.persistent = persistent or PersistentStore(database_url)
        self.cleanup_interval = cleanup_interval
        self.cache_migrations_dir = cache_migrations_dir
        self.persistent_migrations_dir = persistent_migrations_dir
        self._cleanup_task: Optional[asyncio.Task] = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Open the cache store, connect the durable store when configured,
        apply migrations and start the cleanup task.

        A failing durable store is logged and left disabled; a failing cache
        store propagates because the bot cannot run without it.
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return

        try:
            if await self.persistent.connect() and self.persistent_migrations_dir is not None:
                await self.persistent.run_migrations(self.persistent_migrations_dir)
        except Exception as exc:
            logger.error("[DATABASE] Durable store unavailable: %s", exc)
            await self.persistent.close()

        await self.cache.initialize()
        if self.cache_migrations_dir is not None:
            await self.cache.run_migrations(self.cache_migrations_dir)

        self._cleanup_task = asyncio.create_task(self._cleanup_loop(), name="cache-cleanup")
        self._initialized = True
        logger.info(
            "[DATABASE] Databases initialized (durable store %s, cleanup every %.0fs)",
            "connected" if self.persistent.is_connected else "disabled",
            self.cleanup_interval,
        )

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            await self.run_cleanup()

    async def run_cleanup(self) -> Optional[CleanupCounts]:
        """Purge expired cache rows; failures are logged and return ``None``."""
        try:
            return await self.cache.cleanup()
        except Exception as exc:
            logger.error("[DATABASE] Automatic cleanup failed: %s", exc)
            return None

    def get_cache(self) -> CacheStore:
        """
        Raises:
            RuntimeError: If :meth:`initialize` has not run.
        """
        if not self._initialized:
            raise RuntimeError("DatabaseManager is not initialized. Call initialize() first.")
        return self.cache

    def get_persistent(self) -> PersistentStore:
        """
        Raises:
            RuntimeError: If :meth:`initialize` has not run.
        """
        if not self._initialized:
            raise RuntimeError("DatabaseManager is not initialized. Call initialize() first.")
        return self.persistent

    async def stats(self) -> DatabaseStats:
        cache_stats = None
        if self.cache.is_connected:
            try:
                cache_stats = await self.cache.stats()
            except Exception as exc:
                logger.warning("[DATABASE] Could not read cache statistics: %s", exc)
        return DatabaseStats(cache=cache_stats, persistent_connected=self.persistent.is_connected)

    async def shutdown(self) -> None:
        """Stop the cleanup task and close both stores."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

        try:
            await self.persistent.close()
            await self.cache.close()
        except Exception as exc:
            logger.error("[DATABASE] Error while closing databases: %s", exc)

        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")
