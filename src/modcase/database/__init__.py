"""
SQLite persistence layer for Modcase.

- **db_connection.py**: single long-lived aiosqlite connection with serialized
  write transactions
- **db_schema.py**: table and index creation
- **db_cache.py**: injected TTL cache used by the config and feature stores
"""
