"""
Durable PostgreSQL store backed by an asyncpg connection pool.

Used for data that must survive restarts, such as moderation records. The
store is optional: without a ``DATABASE_URL`` it stays disconnected and callers
check :attr:`PersistentStore.is_connected` before using it.

Usage:
    store = PersistentStore(os.getenv("DATABASE_URL"))
    await store.connect()

    rows = await store.select("moderation_actions", where={"guild_id": 1}, limit=10)
    await store.insert("moderation_actions", {"guild_id": 1, "action": "kick"})
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Union

import asyncpg

from lucybot.database.migrations import migration_files, pending
from lucybot.database.query_builder import QueryBuilder, as_dict, check_identifier, numbered
from lucybot.util.logger import get_logger

logger = get_logger("persistent_store")

MIGRATIONS_TABLE = "_migrations"

Row = Dict[str, Any]


class PersistentStore:
    """
    CRUD access to PostgreSQL through a small connection pool.

    Args:
        dsn: PostgreSQL connection URL. ``None`` or empty disables the store.
        min_size, max_size: Pool bounds.
        max_retries: Connection attempts before :meth:`connect` gives up.
        retry_delay: Base delay in seconds between attempts (grows linearly).
    """

    def __init__(
        self,
        dsn: Optional[str],
        min_size: int = 1,
        max_size: int = 5,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.dsn = dsn or ""
        self.min_size = min_size
        self.max_size = max_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self._pool: Optional[Any] = None
        self._lock = asyncio.Lock()
        self._builder = QueryBuilder(numbered)

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> bool:
        """
        Create the pool and the migrations table.

        Returns:
            True once connected, False when no DSN is configured.

        Raises:
            ConnectionError: If every connection attempt fails.
        """
        if not self.dsn:
            logger.warning("[PERSISTENT STORE] DATABASE_URL is not set, durable store disabled")
            return False

        async with self._lock:
            if self._pool is not None:
                return True

            for attempt in range(1, self.max_retries + 1):
                try:
                    self._pool = await asyncpg.create_pool(
                        self.dsn, min_size=self.min_size, max_size=self.max_size
                    )
                    break
                except Exception as exc:
                    logger.warning("[PERSISTENT STORE] Connection attempt %d failed: %s", attempt, exc)
                    if attempt == self.max_retries:
                        raise ConnectionError(
                            f"Failed to connect after {self.max_retries} attempts: {exc}"
                        ) from exc
                    await asyncio.sleep(self.retry_delay * attempt)

        await self._create_migrations_table()
        logger.info("[PERSISTENT STORE] Connected (pool size %d-%d)", self.min_size, self.max_size)
        return True

    async def close(self) -> None:
        async with self._lock:
            if self._pool is None:
                return
            await self._pool.close()
            self._pool = None
            logger.info("[PERSISTENT STORE] Connection pool closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        """
        Borrow a pooled connection.

        Raises:
            RuntimeError: If :meth:`connect` has not succeeded.
        """
        if self._pool is None:
            raise RuntimeError("Persistent store is not connected. Call connect() first.")
        async with self._pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        async with self.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def _create_migrations_table(self) -> None:
        async with self.acquire() as conn:
            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
                    id SERIAL PRIMARY KEY,
                    name VARCHAR(255) UNIQUE NOT NULL,
                    executed_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
                )
            """)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def insert(
        self,
        table: str,
        rows: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]],
    ) -> List[Row]:
        """Insert one row or a list of rows in a single transaction; return them as stored."""
        batch = [rows] if isinstance(rows, Mapping) else list(rows)
        statements = [self._builder.insert(table, row, returning=True) for row in batch]

        inserted: List[Row] = []
        async with self.transaction() as conn:
            for sql, params in statements:
                record = await conn.fetchrow(sql, *params)
                if record is not None:
                    inserted.append(as_dict(record))
        return inserted

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
        async with self.acquire() as conn:
            if single:
                record = await conn.fetchrow(sql, *params)
                return as_dict(record) if record is not None else None
            records = await conn.fetch(sql, *params)
        return [as_dict(record) for record in records]

    async def update(self, table: str, patch: Mapping[str, Any], where: Mapping[str, Any]) -> List[Row]:
        """Update matching rows and return them. An empty ``where`` is refused."""
        sql, params = self._builder.update(table, patch, where, returning=True)
        async with self.acquire() as conn:
            records = await conn.fetch(sql, *params)
        return [as_dict(record) for record in records]

    async def delete(self, table: str, where: Mapping[str, Any]) -> bool:
        """Delete matching rows. An empty ``where`` is refused."""
        sql, params = self._builder.delete(table, where)
        async with self.acquire() as conn:
            await conn.execute(sql, *params)
        return True

    async def table_exists(self, table: str) -> bool:
        check_identifier(table, "table")
        async with self.acquire() as conn:
            result = await conn.fetchval(
                "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
                "WHERE table_schema = 'public' AND table_name = $1)",
                table,
            )
        return bool(result)

    async def run_migrations(self, directory: Path) -> List[str]:
        """Apply pending ``.sql`` files from ``directory``, each in its own transaction."""
        async with self.acquire() as conn:
            records = await conn.fetch(f"SELECT name FROM {MIGRATIONS_TABLE}")
        applied = [record["name"] for record in records]

        executed: List[str] = []
        for name, sql in pending(migration_files(directory), applied):
            logger.info("[PERSISTENT STORE] Applying migration %s", name)
            async with self.transaction() as conn:
                await conn.execute(sql)
                await conn.execute(f"INSERT INTO {MIGRATIONS_TABLE} (name) VALUES ($1)", name)
            executed.append(name)

        logger.info("[PERSISTENT STORE] %d migrations applied", len(executed))
        return executed
