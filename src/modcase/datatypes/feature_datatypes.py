"""
Per-guild feature toggles.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class Feature(str, Enum):
    """Toggleable functional areas; values are the backing column names."""

    MOD_FEATURE = "mod_feature"
    AUTOMOD = "automod"

    def __str__(self) -> str:
        return self.value


class FeatureState(str, Enum):
    ENABLE = "enable"
    DISABLE = "disable"

    def __str__(self) -> str:
        return self.value

    @property
    def enabled(self) -> bool:
        return self is FeatureState.ENABLE

    @classmethod
    def parse(cls, value: Any) -> "FeatureState":
        """Normalize a stored value; anything but ``"enable"`` is disabled."""
        if isinstance(value, FeatureState):
            return value
        if isinstance(value, str) and value.strip().lower() == cls.ENABLE.value:
            return cls.ENABLE
        return cls.DISABLE


DEFAULT_FEATURE_STATE = FeatureState.DISABLE
