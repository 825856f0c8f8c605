"""
Persistent storage for per-guild feature toggles.

One row per guild with a text column per :class:`Feature`.
"""

from __future__ import annotations

from typing import Optional

import aiosqlite

from modcase.datatypes.feature_datatypes import Feature, FeatureState


class GuildFeatureRepo:
    """Low-level CRUD for the ``guild_features`` table."""

    @staticmethod
    async def get_state(conn: aiosqlite.Connection, guild_id: str, feature: Feature) -> Optional[str]:
        """Raw stored value of ``feature``, or None when the guild has no row."""
        # Column names come from the Feature enum, never from user input
        cursor = await conn.execute(
            f"SELECT {feature.value} FROM guild_features WHERE guild_id = ?",
            (str(guild_id),),
        )
        row = await cursor.fetchone()
        return row[0] if row is not None else None

    @staticmethod
    async def upsert_state(
        conn: aiosqlite.Connection,
        guild_id: str,
        feature: Feature,
        state: FeatureState,
        updated_at: str,
        locale: Optional[str] = None,
    ) -> None:
        """Write one feature column, creating the guild row when missing."""
        column = feature.value
        await conn.execute(
            f"""
            INSERT INTO guild_features (guild_id, {column}, locale, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                {column}   = excluded.{column},
                locale     = COALESCE(excluded.locale, guild_features.locale),
                updated_at = excluded.updated_at
            """,
            (str(guild_id), state.value, locale, updated_at),
        )
