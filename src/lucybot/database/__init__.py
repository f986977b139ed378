"""
Database layer for Lucy Bot.

- **db_connection.py**: single long-lived aiosqlite connection with serialised writes.
- **db_schema.py**: tables and indexes of the local cache database.
- **query_builder.py**: parameterised CRUD statements and identifier checks.
- **migrations.py**: ordered ``.sql`` migration discovery.
- **cache_store.py**: local SQLite cache, settings, sessions and temporary logs.
- **persistent_store.py**: optional PostgreSQL store (asyncpg pool).
- **database.py**: ``DatabaseManager`` coordinating both stores and periodic cleanup.
"""
