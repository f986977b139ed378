"""
Local SQLite store for short-lived bot data.

Holds the JSON cache, expiring bot settings, per-user sessions and temporary
log records. Everything with an expiry is purged by :meth:`CacheStore.cleanup`,
which :class:`lucybot.database.database.DatabaseManager` runs periodically.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from lucybot.database.db_connection import ConnectionManager
from lucybot.database.db_schema import MIGRATIONS_TABLE, SchemaManager
from lucybot.database.migrations import migration_files, pending
from lucybot.database.query_builder import QueryBuilder, as_dict, qmark
from lucybot.util.logger import get_logger

logger = get_logger("cache_store")

DEFAULT_CACHE_TTL = 3600


@dataclass
class CleanupCounts:
    """Rows removed by one :meth:`CacheStore.cleanup` pass."""

    cache: int = 0
    settings: int = 0
    sessions: int = 0

    @property
    def total(self) -> int:
        return self.cache + self.settings + self.sessions


@dataclass
class CacheStats:
    cache_entries: int
    settings: int
    sessions: int
    logs: int
    db_size: int


class CacheStore:
    """
    CRUD helpers plus cache, settings and session utilities over one SQLite file.

    Args:
        db_path: Location of the database file; its directory is created on demand.
        clock: Returns the current Unix time in seconds. Expiry checks use it.
    """

    def __init__(self, db_path: Path, clock: Callable[[], float] = time.time) -> None:
        self.db_path = db_path
        self.clock = clock
        self._connection = ConnectionManager()
        self._builder = QueryBuilder(qmark)

    @property
    def is_connected(self) -> bool:
        return self._connection.is_open

    async def initialize(self) -> None:
        """Open the database and create the schema."""
        await self._connection.open(self.db_path)
        await SchemaManager.initialize_schema(self._connection.connection)
        logger.info("[CACHE STORE] Initialized at %s", self.db_path)

    async def close(self) -> None:
        await self._connection.close()

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and return the number of affected rows."""
        async with self._connection.transaction() as conn:
            cursor = await conn.execute(sql, tuple(params))
            return cursor.rowcount

    async def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        async with self._connection.read() as conn:
            async with conn.execute(sql, tuple(params)) as cursor:
                rows = await cursor.fetchall()
        return [as_dict(row) for row in rows]

    async def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        async with self._connection.read() as conn:
            async with conn.execute(sql, tuple(params)) as cursor:
                row = await cursor.fetchone()
        return as_dict(row) if row is not None else None

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def insert(self, table: str, row: Mapping[str, Any]) -> Optional[int]:
        """Insert one row and return its rowid."""
        sql, params = self._builder.insert(table, row)
        async with self._connection.transaction() as conn:
            cursor = await conn.execute(sql, tuple(params))
            return cursor.lastrowid

    async def select(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        single: bool = False,
    ) -> Any:
        """Select rows as dicts; with ``single=True`` return the first row or ``None``."""
        sql, params = self._builder.select(
            table, columns, where, order_by, descending, 1 if single else limit
        )
        if single:
            return await self.query_one(sql, params)
        return await self.query(sql, params)

    async def update(self, table: str, patch: Mapping[str, Any], where: Mapping[str, Any]) -> int:
        sql, params = self._builder.update(table, patch, where)
        return await self.execute(sql, params)

    async def delete(self, table: str, where: Mapping[str, Any]) -> int:
        sql, params = self._builder.delete(table, where)
        return await self.execute(sql, params)

    # ------------------------------------------------------------------
    # Cache, settings, sessions
    # ------------------------------------------------------------------

    async def set_cache(self, key: str, value: Any, ttl_seconds: float = DEFAULT_CACHE_TTL) -> None:
        await self.execute(
            "INSERT OR REPLACE INTO cache (key, data, expires_at) VALUES (?, ?, ?)",
            (key, json.dumps(value), self.clock() + ttl_seconds),
        )

    async def get_cache(self, key: str) -> Any:
        """Return the cached value, or ``None`` when it is absent or expired."""
        row = await self.query_one(
            "SELECT data FROM cache WHERE key = ? AND expires_at > ?",
            (key, self.clock()),
        )
        return json.loads(row["data"]) if row else None

    async def delete_cache(self, key: str) -> bool:
        return await self.execute("DELETE FROM cache WHERE key = ?", (key,)) > 0

    async def set_setting(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        expires_at = self.clock() + ttl_seconds if ttl_seconds else None
        await self.execute(
            "INSERT OR REPLACE INTO bot_settings (key, value, expires_at, updated_at) "
            "VALUES (?, ?, ?, CURRENT_TIMESTAMP)",
            (key, json.dumps(value), expires_at),
        )

    async def get_setting(self, key: str, default: Any = None) -> Any:
        row = await self.query_one(
            "SELECT value FROM bot_settings WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
            (key, self.clock()),
        )
        return json.loads(row["value"]) if row else default

    async def set_session(
        self,
        user_id: int | str,
        guild_id: int | str,
        data: Any,
        ttl_seconds: float = DEFAULT_CACHE_TTL,
    ) -> None:
        await self.execute(
            "INSERT INTO user_sessions (user_id, guild_id, session_data, expires_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT (user_id, guild_id) DO UPDATE SET "
            "session_data = excluded.session_data, expires_at = excluded.expires_at",
            (str(user_id), str(guild_id), json.dumps(data), self.clock() + ttl_seconds),
        )

    async def get_session(self, user_id: int | str, guild_id: int | str) -> Any:
        row = await self.query_one(
            "SELECT session_data FROM user_sessions WHERE user_id = ? AND guild_id = ? AND expires_at > ?",
            (str(user_id), str(guild_id), self.clock()),
        )
        if row is None or row["session_data"] is None:
            return None
        return json.loads(row["session_data"])

    async def log_event(self, level: str, message: str, data: Any = None) -> None:
        """Append a record to ``temp_logs``."""
        await self.execute(
            "INSERT INTO temp_logs (level, message, data) VALUES (?, ?, ?)",
            (level.upper(), message, json.dumps(data) if data is not None else None),
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup(self) -> CleanupCounts:
        """Delete every expired cache entry, setting and session."""
        now = self.clock()
        async with self._connection.transaction() as conn:
            cache = await conn.execute("DELETE FROM cache WHERE expires_at <= ?", (now,))
            settings = await conn.execute(
                "DELETE FROM bot_settings WHERE expires_at IS NOT NULL AND expires_at <= ?", (now,)
            )
            sessions = await conn.execute("DELETE FROM user_sessions WHERE expires_at <= ?", (now,))
            counts = CleanupCounts(cache.rowcount, settings.rowcount, sessions.rowcount)

        logger.info(
            "[CACHE STORE] Cleanup removed %d cache entries, %d settings, %d sessions",
            counts.cache, counts.settings, counts.sessions,
        )
        return counts

    async def stats(self) -> CacheStats:
        async def count(table: str) -> int:
            row = await self.query_one(f"SELECT COUNT(*) AS count FROM {table}")
            return int(row["count"]) if row else 0

        size = self.db_path.stat().st_size if self.db_path.exists() else 0
        return CacheStats(
            cache_entries=await count("cache"),
            settings=await count("bot_settings"),
            sessions=await count("user_sessions"),
            logs=await count("temp_logs"),
            db_size=size,
        )

    async def vacuum(self) -> bool:
        """
        Rebuild the database file to reclaim space.

        Returns:
            True if vacuum succeeded, False otherwise
        """
        try:
            async with self._connection.transaction() as conn:
                await conn.commit()
                await conn.execute("VACUUM")
            logger.info("[CACHE STORE] Vacuum completed")
            return True
        except Exception as e:
            logger.error("[CACHE STORE] Vacuum failed: %s", e)
            return False

    async def run_migrations(self, directory: Path) -> List[str]:
        """Apply pending ``.sql`` files from ``directory`` and return their names."""
        applied = [row["name"] for row in await self.query(f"SELECT name FROM {MIGRATIONS_TABLE}")]
        executed: List[str] = []

        for name, sql in pending(migration_files(directory), applied):
            logger.info("[CACHE STORE] Applying migration %s", name)
            escaped = name.replace("'", "''")
            script = (
                f"BEGIN;\n{sql}\n;\n"
                f"INSERT INTO {MIGRATIONS_TABLE} (name) VALUES ('{escaped}');\nCOMMIT;"
            )
            async with self._connection.transaction() as conn:
                await conn.executescript(script)
            executed.append(name)

        logger.info("[CACHE STORE] %d migrations applied", len(executed))
        return executed
