"""
Persistent storage for per-guild moderation config documents.

Each guild has at most one row holding the full merged document as JSON.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import aiosqlite


class ModerationConfigRepo:
    """Low-level CRUD for the ``moderation_configs`` table."""

    @staticmethod
    async def get(conn: aiosqlite.Connection, guild_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored document for ``guild_id`` or None when no row exists."""
        cursor = await conn.execute(
            "SELECT config FROM moderation_configs WHERE guild_id = ?",
            (str(guild_id),),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        document = json.loads(row[0])
        if document is not None and not isinstance(document, dict):
            raise ValueError(f"stored config for guild {guild_id} is not a JSON object")
        return document

    @staticmethod
    async def upsert(
        conn: aiosqlite.Connection,
        guild_id: str,
        config: Dict[str, Any],
        updated_at: str,
    ) -> None:
        """Insert or overwrite the document for ``guild_id``."""
        await conn.execute(
            """
            INSERT INTO moderation_configs (guild_id, config, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                config     = excluded.config,
                updated_at = excluded.updated_at
            """,
            (str(guild_id), json.dumps(config, ensure_ascii=False), updated_at),
        )
