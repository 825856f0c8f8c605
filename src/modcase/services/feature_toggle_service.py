"""
Command-layer rules for switching moderation and automod.

Automod only runs on top of the moderation feature: it cannot be enabled
while moderation is disabled, and disabling moderation switches automod off
as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from modcase.datatypes.feature_datatypes import Feature, FeatureState
from modcase.errors import FeatureDependencyError
from modcase.services.feature_toggle_store import FeatureToggleStore
from modcase.util.logger import get_logger

logger = get_logger("feature_toggle_service")


@dataclass(frozen=True, slots=True)
class ToggleOutcome:
    """Result of a toggle request."""

    changed: bool
    state: FeatureState
    automod_disabled: bool = False


class FeatureToggleService:
    def __init__(self, store: FeatureToggleStore) -> None:
        self._store = store

    async def set_moderation(
        self,
        guild_id: str,
        state: FeatureState,
        guild_name: Optional[str] = None,
    ) -> ToggleOutcome:
        """
        Switch the moderation feature.

        Disabling it also disables automod; ``automod_disabled`` reports
        whether automod had been enabled before.
        """
        state = FeatureState(state)
        previous = await self._store.get_state(guild_id, Feature.MOD_FEATURE)
        previous_automod = await self._store.get_state(guild_id, Feature.AUTOMOD)

        if previous is state:
            return ToggleOutcome(changed=False, state=state)

        await self._store.set_state(guild_id, Feature.MOD_FEATURE, state, guild_name)

        automod_disabled = False
        if state is FeatureState.DISABLE:
            await self._store.set_state(guild_id, Feature.AUTOMOD, FeatureState.DISABLE, guild_name)
            automod_disabled = previous_automod is FeatureState.ENABLE

        logger.info("[FEATURE TOGGLE] Moderation %s for guild %s", state, guild_id)
        return ToggleOutcome(changed=True, state=state, automod_disabled=automod_disabled)

    async def set_automod(
        self,
        guild_id: str,
        state: FeatureState,
        guild_name: Optional[str] = None,
    ) -> ToggleOutcome:
        """
        Switch automod.

        Raises:
            FeatureDependencyError: enabling automod while moderation is disabled.
        """
        state = FeatureState(state)
        moderation = await self._store.get_state(guild_id, Feature.MOD_FEATURE)
        if state is FeatureState.ENABLE and moderation is not FeatureState.ENABLE:
            raise FeatureDependencyError(Feature.AUTOMOD.value, Feature.MOD_FEATURE.value)

        previous = await self._store.get_state(guild_id, Feature.AUTOMOD)
        if previous is state:
            return ToggleOutcome(changed=False, state=state)

        await self._store.set_state(guild_id, Feature.AUTOMOD, state, guild_name)
        logger.info("[FEATURE TOGGLE] Automod %s for guild %s", state, guild_id)
        return ToggleOutcome(changed=True, state=state)
