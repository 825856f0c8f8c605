"""
Exception hierarchy for modcase.

Reads against the backend recover locally (defaults, cached fallbacks), so
only write paths and invalid input surface these to callers.
"""

from __future__ import annotations


class ModcaseError(Exception):
    """Base class for every error raised by modcase."""


class StorageError(ModcaseError):
    """A backend read or write failed."""


class CaseWriteError(StorageError):
    """A moderation case could not be persisted."""


class ConfigWriteError(StorageError):
    """A moderation configuration change could not be persisted."""


class FeatureWriteError(StorageError):
    """A feature toggle change could not be persisted."""


class InvalidConfigError(ModcaseError, ValueError):
    """A configuration document or patch does not describe a valid config."""


class FeatureDependencyError(ModcaseError):
    """A feature cannot change state because a parent feature forbids it."""

    def __init__(self, feature: str, requires: str) -> None:
        super().__init__(f"{feature} cannot be enabled while {requires} is disabled")
        self.feature = feature
        self.requires = requires
