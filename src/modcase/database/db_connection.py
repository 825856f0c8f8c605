"""
Owner of the process-wide SQLite connection.

Every store shares one aiosqlite connection in WAL mode. Writers queue on a
semaphore held for the length of :meth:`ConnectionManager.transaction`;
readers go straight to the connection through :meth:`ConnectionManager.read`.

    db = ConnectionManager()
    await db.open(app_config.database_path)

    async with db.transaction() as conn:
        await ModerationCaseRepo.insert(conn, record)

    async with db.read() as conn:
        rows = await ModerationCaseRepo.list_for_target(conn, guild_id, target_id)

    await db.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from modcase.database.db_schema import SchemaManager
from modcase.util.logger import get_logger

logger = get_logger("database_connection")

STARTUP_PRAGMAS = (
    ("journal_mode", "WAL"),
    ("foreign_keys", "ON"),
    ("synchronous", "NORMAL"),
    ("temp_store", "MEMORY"),
    ("busy_timeout", "5000"),
)


class ConnectionManager:
    """Opens, hands out and closes the shared connection."""

    def __init__(self) -> None:
        self._db: aiosqlite.Connection | None = None
        self._writer = asyncio.Semaphore(1)
        self.path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._db is not None

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The open connection.

        Raises:
            RuntimeError: ``open()`` has not been awaited yet, or the
                connection was closed.
        """
        if self._db is None:
            raise RuntimeError("database is not open; await ConnectionManager.open(path) first")
        return self._db

    async def open(self, path: Path) -> None:
        """Connect to ``path``, apply the startup pragmas and ensure the schema exists."""
        if self._db is not None:
            logger.warning("[DB CONNECTION] Already connected to %s, ignoring open(%s)", self.path, path)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(path)
        db.row_factory = aiosqlite.Row
        for name, value in STARTUP_PRAGMAS:
            await db.execute(f"PRAGMA {name} = {value}")
        await SchemaManager.initialize_schema(db)

        self._db = db
        self.path = path
        logger.info("[DB CONNECTION] Connected to %s", path)

    async def close(self) -> None:
        """Checkpoint the WAL into the main file and disconnect. No-op when closed."""
        db, self._db = self._db, None
        if db is None:
            return

        try:
            await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await db.commit()
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] Checkpoint before close failed for %s", self.path)
        finally:
            await db.close()
        logger.info("[DB CONNECTION] Disconnected from %s", self.path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Exclusive write access.

        The block's statements are committed together when it exits
        normally. Any exception rolls them back and is re-raised.
        """
        db = self.connection
        async with self._writer:
            try:
                yield db
            except BaseException:
                await db.rollback()
                raise
            await db.commit()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Unlocked access for queries."""
        yield self.connection
