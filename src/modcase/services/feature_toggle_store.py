"""
Cached per-guild feature switches.

Reads degrade to ``disable`` when the backend fails and keep that fallback
only briefly (30 s) so a transient outage is retried sooner than a confirmed
value (5 min). Writes propagate failures and refresh the cache on success.

The store keeps booleans only. The rule that automod requires the moderation
feature is enforced by :class:`modcase.services.feature_toggle_service.FeatureToggleService`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from modcase.database.db_cache import GuildCache
from modcase.database.db_connection import ConnectionManager
from modcase.datatypes.feature_datatypes import DEFAULT_FEATURE_STATE, Feature, FeatureState
from modcase.errors import FeatureWriteError
from modcase.repositories.guild_feature_repo import GuildFeatureRepo
from modcase.util.logger import get_logger

logger = get_logger("feature_toggle_store")

SUCCESS_TTL_SECONDS = 5 * 60
FAILURE_TTL_SECONDS = 30


class FeatureToggleStore:
    def __init__(
        self,
        db: ConnectionManager,
        cache: GuildCache,
        repo: Optional[GuildFeatureRepo] = None,
        success_ttl_seconds: float = SUCCESS_TTL_SECONDS,
        failure_ttl_seconds: float = FAILURE_TTL_SECONDS,
    ) -> None:
        self._db = db
        self._cache = cache
        self._repo = repo or GuildFeatureRepo()
        self._success_ttl = success_ttl_seconds
        self._failure_ttl = failure_ttl_seconds

    @staticmethod
    def _key(guild_id: str, feature: Feature) -> tuple[str, str]:
        return (str(guild_id), Feature(feature).value)

    async def get_state(self, guild_id: str, feature: Feature) -> FeatureState:
        """Return the feature's state; ``disable`` when unset or unreadable."""
        feature = Feature(feature)
        key = self._key(guild_id, feature)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            async with self._db.read() as conn:
                raw = await self._repo.get_state(conn, str(guild_id), feature)
        except Exception:
            logger.warning(
                "[FEATURE STORE] Failed to read %s for guild %s, assuming %s",
                feature, guild_id, DEFAULT_FEATURE_STATE,
                exc_info=True,
            )
            self._cache.set(key, DEFAULT_FEATURE_STATE, ttl_seconds=self._failure_ttl)
            return DEFAULT_FEATURE_STATE

        state = FeatureState.parse(raw)
        self._cache.set(key, state, ttl_seconds=self._success_ttl)
        return state

    async def set_state(
        self,
        guild_id: str,
        feature: Feature,
        state: FeatureState,
        guild_name: Optional[str] = None,
    ) -> None:
        """
        Persist ``state`` for ``feature``.

        ``guild_name`` is stored alongside as the guild's locale label when
        given.

        Raises:
            FeatureWriteError: the backend rejected the write; the cache is
                left untouched.
        """
        feature = Feature(feature)
        state = FeatureState(state)
        locale = guild_name.strip() if guild_name and guild_name.strip() else None

        try:
            async with self._db.transaction() as conn:
                await self._repo.upsert_state(
                    conn,
                    str(guild_id),
                    feature,
                    state,
                    datetime.now(timezone.utc).isoformat(),
                    locale=locale,
                )
        except Exception as exc:
            logger.error("[FEATURE STORE] Failed to update %s for guild %s: %s", feature, guild_id, exc)
            raise FeatureWriteError(f"could not persist {feature} for guild {guild_id}") from exc

        self._cache.set(self._key(guild_id, feature), state, ttl_seconds=self._success_ttl)
        logger.info("[FEATURE STORE] Set %s=%s for guild %s", feature, state, guild_id)

    def invalidate(self, guild_id: str, feature: Optional[Feature] = None) -> None:
        features = [Feature(feature)] if feature is not None else list(Feature)
        for item in features:
            self._cache.invalidate(self._key(guild_id, item))
