"""
Per-guild moderation configuration store.

Reads hydrate the hard-coded defaults with the guild's stored document and
cache the result for a short TTL. Reads never fail: a storage fault degrades
to the default configuration. Writes always persist the whole merged
document and propagate storage failures, so a configuration change is never
lost silently.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from modcase.database.db_cache import GuildCache
from modcase.database.db_connection import ConnectionManager
from modcase.datatypes.moderation_config import (
    ModerationConfig,
    ModerationConfigPatch,
    create_default_config,
)
from modcase.errors import ConfigWriteError
from modcase.repositories.moderation_config_repo import ModerationConfigRepo
from modcase.util.logger import get_logger

logger = get_logger("moderation_config_store")

CONFIG_CACHE_TTL_SECONDS = 60


class _Unset:
    """Marker for patch keys that should leave the target untouched."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def merge_deep(target: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge ``patch`` onto ``target`` and return a new dict.

    - mapping onto mapping merges key by key, recursively
    - lists and scalars in the patch replace the target value
    - ``UNSET`` values are skipped; ``None`` is written and clears the field

    Neither argument is mutated.
    """
    result = dict(target)
    for key, value in patch.items():
        if value is UNSET:
            continue
        current = result.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            result[key] = merge_deep(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def hydrate_config(guild_id: str, stored: Optional[Mapping[str, Any]] = None) -> ModerationConfig:
    """Merge a stored document (or partial patch) onto the defaults."""
    document = create_default_config(guild_id).to_dict()
    if stored:
        document = merge_deep(document, stored)
    document["guild_id"] = str(guild_id)
    return ModerationConfig.from_dict(document)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ModerationConfigStore:
    """
    Cached access to per-guild :class:`ModerationConfig` documents.

    Returned configs are shared with the cache; treat them as read-only and
    change settings through :meth:`update_config`.
    """

    def __init__(
        self,
        db: ConnectionManager,
        cache: GuildCache,
        repo: Optional[ModerationConfigRepo] = None,
    ) -> None:
        self._db = db
        self._cache = cache
        self._repo = repo or ModerationConfigRepo()

    @staticmethod
    def create_default_config(guild_id: str) -> ModerationConfig:
        return create_default_config(guild_id)

    async def fetch_config(self, guild_id: str) -> ModerationConfig:
        """
        Return the guild's config, from cache when fresh.

        A missing row yields the defaults. Any failure while reading or
        decoding the stored document is logged and the defaults are cached
        for the normal TTL, which bounds how often a broken backend is retried.
        """
        guild_id = str(guild_id)
        cached = self._cache.get(guild_id)
        if cached is not None:
            return cached

        try:
            async with self._db.read() as conn:
                stored = await self._repo.get(conn, guild_id)
            config = hydrate_config(guild_id, stored)
        except Exception:
            logger.warning(
                "[CONFIG STORE] Failed to fetch config for guild %s, using defaults",
                guild_id,
                exc_info=True,
            )
            config = create_default_config(guild_id)

        self._cache.set(guild_id, config)
        return config

    async def update_config(self, guild_id: str, patch: ModerationConfigPatch | Mapping[str, Any]) -> ModerationConfig:
        """
        Merge ``patch`` onto the current config and persist the whole document.

        Raises:
            InvalidConfigError: the merged document is not a valid config;
                nothing is written.
            ConfigWriteError: the backend rejected the write; the cache keeps
                its previous entry.
        """
        guild_id = str(guild_id)
        current = await self.fetch_config(guild_id)
        merged = merge_deep(current.to_dict(), patch)
        merged["guild_id"] = guild_id
        config = ModerationConfig.from_dict(merged)

        await self._persist(config, "update")
        logger.info("[CONFIG STORE] Updated config for guild %s", guild_id)
        return config

    async def overwrite_config(self, guild_id: str, config: ModerationConfig) -> ModerationConfig:
        """
        Persist ``config`` as the guild's whole document, ignoring the stored one.

        Raises:
            ConfigWriteError: the backend rejected the write.
        """
        guild_id = str(guild_id)
        document = config.to_dict()
        document["guild_id"] = guild_id
        normalized = ModerationConfig.from_dict(document)

        await self._persist(normalized, "overwrite")
        logger.info("[CONFIG STORE] Overwrote config for guild %s", guild_id)
        return normalized

    def invalidate(self, guild_id: str) -> None:
        """Drop the cached config; the next fetch re-reads the backend."""
        self._cache.invalidate(str(guild_id))

    async def _persist(self, config: ModerationConfig, operation: str) -> None:
        try:
            async with self._db.transaction() as conn:
                await self._repo.upsert(conn, config.guild_id, config.to_dict(), _utcnow_iso())
        except Exception as exc:
            logger.error("[CONFIG STORE] Failed to %s config for guild %s: %s", operation, config.guild_id, exc)
            raise ConfigWriteError(f"could not persist moderation config for guild {config.guild_id}") from exc

        self._cache.set(config.guild_id, config)
