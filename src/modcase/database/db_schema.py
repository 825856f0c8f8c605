"""
Database schema initialization.

Creates the three tables backing the moderation core plus schema version
tracking. Every statement is idempotent, so this runs on each startup.
"""

import aiosqlite
from modcase.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables and indexes for moderation configs, cases and features."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all database tables and indexes.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        # One merged JSON document per guild
        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_configs (
                guild_id TEXT PRIMARY KEY,
                config TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        # Append-only case log
        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_cases (
                id TEXT PRIMARY KEY,
                case_number INTEGER,
                guild_id TEXT NOT NULL,
                type TEXT NOT NULL,
                reason TEXT NOT NULL DEFAULT '',
                target_id TEXT NOT NULL,
                target_tag TEXT NOT NULL,
                moderator_id TEXT NOT NULL,
                moderator_tag TEXT NOT NULL,
                severity TEXT CHECK (severity IN ('low', 'medium', 'high')),
                duration_ms INTEGER,
                metadata TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL,
                resolved_at TEXT
            )
        """)

        # Feature toggles
        await db.execute("""
            CREATE TABLE IF NOT EXISTS guild_features (
                guild_id TEXT PRIMARY KEY,
                mod_feature TEXT NOT NULL DEFAULT 'disable' CHECK (mod_feature IN ('enable', 'disable')),
                automod TEXT NOT NULL DEFAULT 'disable' CHECK (automod IN ('enable', 'disable')),
                locale TEXT,
                updated_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        """Create indexes for the trigger-count and history queries."""
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_moderation_cases_target "
            "ON moderation_cases(guild_id, target_id, type)"
        )
        await db.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_moderation_cases_number "
            "ON moderation_cases(guild_id, case_number)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_moderation_cases_created "
            "ON moderation_cases(guild_id, created_at DESC)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
