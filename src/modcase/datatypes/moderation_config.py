"""
Per-guild moderation configuration document.

The configuration is stored as one JSON document per guild. Every field has a
total default, so a guild without any stored overrides still gets a fully
usable configuration. Partial changes are expressed as a
:class:`ModerationConfigPatch`, a nested ``TypedDict`` where every key is
optional, and are merged onto the current document by
:func:`modcase.moderation.config_store.merge_deep`.

Document keys use the same snake_case names as the dataclass attributes.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, TypedDict

from modcase.errors import InvalidConfigError


class LogCategory(str, Enum):
    """Named moderation log outputs, each routable to its own channel."""

    MODERATION = "moderation"
    CASES = "cases"
    JOINS = "joins"
    LEAVES = "leaves"
    NAME_CHANGES = "name_changes"
    AVATAR_CHANGES = "avatar_changes"
    MESSAGE_DELETES = "message_deletes"
    MESSAGE_EDITS = "message_edits"
    BANS = "bans"
    UNBANS = "unbans"
    TIMEOUTS = "timeouts"
    ROLE_CHANGES = "role_changes"

    def __str__(self) -> str:
        return self.value


class EscalationKind(str, Enum):
    """Automated follow-up actions an escalation rule can recommend."""

    TIMEOUT = "timeout"
    BAN = "ban"
    KICK = "kick"

    def __str__(self) -> str:
        return self.value


FILTER_LEVELS = ("level1", "level2", "level3")


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------

def _check_value(value: Any, default: Any, path: str) -> Any:
    """Validate ``value`` against the type of the field's default value."""
    if default is None:
        return copy.deepcopy(value)
    if value is None:
        raise InvalidConfigError(f"{path} cannot be null")
    if isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, type(default))
    if not ok:
        raise InvalidConfigError(
            f"{path} must be of type {type(default).__name__}, got {type(value).__name__}"
        )
    return copy.deepcopy(value)


def _require_mapping(data: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise InvalidConfigError(f"{path} must be a mapping")
    return data


def _build_group(cls, data: Any, path: str):
    """Build a flat settings group, keeping defaults for absent keys."""
    data = _require_mapping(data, path)
    instance = cls()
    for f in fields(cls):
        if f.name in data:
            default = getattr(instance, f.name)
            setattr(instance, f.name, _check_value(data[f.name], default, f"{path}.{f.name}"))
    return instance


def _group_to_dict(group: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for f in fields(group):
        result[f.name] = _to_plain(getattr(group, f.name))
    return result


def _to_plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_to_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_plain(item) for key, item in value.items()}
    return value


# ---------------------------------------------------------------------------
# Escalation
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class EscalationAction:
    """
    Automated action recommended when a rule fires.

    Attributes:
        kind: Timeout, ban or kick.
        reason: Reason recorded on the follow-up case and sent to the platform.
        duration_ms: Timeout length in milliseconds; only set for timeouts.
    """

    kind: EscalationKind
    reason: str
    duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value, "reason": self.reason}
        if self.kind is EscalationKind.TIMEOUT:
            data["duration_ms"] = self.duration_ms
        return data

    @classmethod
    def from_dict(cls, data: Any, path: str = "action") -> "EscalationAction":
        data = _require_mapping(data, path)
        try:
            kind = EscalationKind(data.get("kind"))
        except ValueError:
            raise InvalidConfigError(f"{path}.kind must be one of timeout, ban, kick") from None

        reason = data.get("reason", "")
        if not isinstance(reason, str):
            raise InvalidConfigError(f"{path}.reason must be a string")

        duration_ms = None
        if kind is EscalationKind.TIMEOUT:
            duration_ms = data.get("duration_ms")
            if isinstance(duration_ms, bool) or not isinstance(duration_ms, int) or duration_ms <= 0:
                raise InvalidConfigError(f"{path}.duration_ms must be a positive integer for timeouts")

        return cls(kind=kind, reason=reason, duration_ms=duration_ms)


@dataclass(slots=True)
class EscalationRule:
    """One rung of an escalation ladder."""

    id: str
    threshold: int
    action: EscalationAction
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "threshold": self.threshold,
            "action": self.action.to_dict(),
        }
        if self.note is not None:
            data["note"] = self.note
        return data

    @classmethod
    def from_dict(cls, data: Any, path: str = "rule") -> "EscalationRule":
        data = _require_mapping(data, path)
        rule_id = data.get("id")
        if not isinstance(rule_id, str) or not rule_id:
            raise InvalidConfigError(f"{path}.id must be a non-empty string")

        threshold = data.get("threshold")
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1:
            raise InvalidConfigError(f"{path}.threshold must be a positive integer")

        note = data.get("note")
        if note is not None and not isinstance(note, str):
            raise InvalidConfigError(f"{path}.note must be a string")

        return cls(
            id=rule_id,
            threshold=threshold,
            action=EscalationAction.from_dict(data.get("action"), f"{path}.action"),
            note=note,
        )


def default_warn_ladder() -> List[EscalationRule]:
    return [
        EscalationRule(
            id="warn-3-timeout-1h",
            threshold=3,
            action=EscalationAction(
                kind=EscalationKind.TIMEOUT,
                duration_ms=60 * 60 * 1000,
                reason="Automatische Auszeit nach 3 Verwarnungen.",
            ),
            note="Verstöße häufen sich – automatische Auszeit für eine Stunde.",
        ),
        EscalationRule(
            id="warn-5-ban",
            threshold=5,
            action=EscalationAction(
                kind=EscalationKind.BAN,
                reason="Automatischer Bann nach 5 Verwarnungen.",
            ),
            note="Nach fünf Verwarnungen erfolgt ein automatischer Bann.",
        ),
    ]


@dataclass(slots=True)
class EscalationSettings:
    warn: List[EscalationRule] = field(default_factory=default_warn_ladder)

    def to_dict(self) -> Dict[str, Any]:
        return {"warn": [rule.to_dict() for rule in self.warn]}

    @classmethod
    def from_dict(cls, data: Any, path: str = "escalation") -> "EscalationSettings":
        # Imported here: the ladder validator lives with the evaluator.
        from modcase.moderation.escalation import validate_ladder

        data = _require_mapping(data, path)
        if "warn" not in data:
            return cls()
        raw_rules = data["warn"]
        if raw_rules is None:
            return cls(warn=[])
        if not isinstance(raw_rules, list):
            raise InvalidConfigError(f"{path}.warn must be a list")
        rules = [EscalationRule.from_dict(item, f"{path}.warn[{index}]") for index, item in enumerate(raw_rules)]
        validate_ladder(rules)
        return cls(warn=rules)


# ---------------------------------------------------------------------------
# Flat settings groups
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class LogChannels:
    """Destination channel per log category; ``None`` means unset."""

    moderation: Optional[str] = None
    cases: Optional[str] = None
    joins: Optional[str] = None
    leaves: Optional[str] = None
    name_changes: Optional[str] = None
    avatar_changes: Optional[str] = None
    message_deletes: Optional[str] = None
    message_edits: Optional[str] = None
    bans: Optional[str] = None
    unbans: Optional[str] = None
    timeouts: Optional[str] = None
    role_changes: Optional[str] = None

    def get(self, category: LogCategory | str) -> Optional[str]:
        return getattr(self, LogCategory(category).value)

    def to_dict(self) -> Dict[str, Any]:
        return _group_to_dict(self)

    @classmethod
    def from_dict(cls, data: Any, path: str = "log_channels") -> "LogChannels":
        data = _require_mapping(data, path)
        instance = cls()
        for f in fields(cls):
            value = data.get(f.name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (str, int)):
                raise InvalidConfigError(f"{path}.{f.name} must be a channel id")
            setattr(instance, f.name, str(value))
        return instance


@dataclass(slots=True)
class SoftActionSettings:
    allow_lock: bool = True
    allow_slowmode: bool = True
    allow_nick: bool = True
    default_slowmode_seconds: int = 30
    default_lock_reason: str = "Temporäre Beruhigung des Channels."

    def to_dict(self) -> Dict[str, Any]:
        return _group_to_dict(self)


def default_filter_actions() -> Dict[str, EscalationAction]:
    return {
        "level1": EscalationAction(
            kind=EscalationKind.TIMEOUT,
            duration_ms=15 * 60 * 1000,
            reason="Automatische Auszeit (Level 1).",
        ),
        "level2": EscalationAction(
            kind=EscalationKind.TIMEOUT,
            duration_ms=12 * 60 * 60 * 1000,
            reason="Automatische Auszeit (Level 2).",
        ),
        "level3": EscalationAction(kind=EscalationKind.BAN, reason="Automatischer Bann (Level 3)."),
    }


@dataclass(slots=True)
class FilterSettings:
    level: str = "level1"
    review_queue_enabled: bool = False
    actions: Dict[str, EscalationAction] = field(default_factory=default_filter_actions)

    def to_dict(self) -> Dict[str, Any]:
        return _group_to_dict(self)

    @classmethod
    def from_dict(cls, data: Any, path: str = "filters") -> "FilterSettings":
        data = _require_mapping(data, path)
        instance = cls()
        if "level" in data:
            if data["level"] not in FILTER_LEVELS:
                raise InvalidConfigError(f"{path}.level must be one of {', '.join(FILTER_LEVELS)}")
            instance.level = data["level"]
        if "review_queue_enabled" in data:
            instance.review_queue_enabled = _check_value(
                data["review_queue_enabled"], False, f"{path}.review_queue_enabled"
            )
        if "actions" in data:
            actions = _require_mapping(data["actions"], f"{path}.actions")
            for level, raw_action in actions.items():
                if level not in FILTER_LEVELS:
                    raise InvalidConfigError(f"{path}.actions has unknown level {level!r}")
                instance.actions[level] = EscalationAction.from_dict(raw_action, f"{path}.actions.{level}")
        return instance


@dataclass(slots=True)
class RateLimitSettings:
    messages_per_second: int = 5
    messages_per_minute: int = 20
    caps_percentage: int = 80
    emoji_limit: int = 10
    mention_limit: int = 5

    def to_dict(self) -> Dict[str, Any]:
        return _group_to_dict(self)


@dataclass(slots=True)
class RaidSettings:
    spike_member_count: int = 10
    spike_interval_minutes: int = 2
    auto_slowmode_seconds: int = 10
    auto_lock_duration_minutes: int = 15
    require_verification: bool = True
    captcha_gate: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return _group_to_dict(self)


@dataclass(slots=True)
class NotificationSettings:
    dm_on_action: bool = True
    dm_include_reason: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return _group_to_dict(self)


@dataclass(slots=True)
class RetentionSettings:
    # Documented for operators; enforcement is not part of this package.
    case_retention_days: int = 180
    log_retention_days: int = 180
    anonymize_after_days: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _group_to_dict(self)


@dataclass(slots=True)
class PermissionSettings:
    super_admin_ids: List[str] = field(default_factory=list)
    # command name -> role ids allowed to run it; empty falls back to platform permissions
    role_overrides: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _group_to_dict(self)


def default_reasons() -> Dict[str, List[str]]:
    return {
        "warn": ["Allgemeine Verwarnung", "Unangemessenes Verhalten", "Spam"],
        "mute": ["Störung der Unterhaltung", "Spam oder Caps-Spam"],
        "ban": ["Schwere Regelverletzung", "Verstoß gegen die Serverregeln"],
        "kick": ["Temporärer Ausschluss wegen Fehlverhalten"],
    }


@dataclass(slots=True)
class DefaultSettings:
    timeout_minutes: int = 10
    reasons: Dict[str, List[str]] = field(default_factory=default_reasons)

    def to_dict(self) -> Dict[str, Any]:
        return _group_to_dict(self)


# ---------------------------------------------------------------------------
# Whole document
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class ModerationConfig:
    """Fully resolved moderation configuration of one guild."""

    guild_id: str
    log_channels: LogChannels = field(default_factory=LogChannels)
    escalation: EscalationSettings = field(default_factory=EscalationSettings)
    soft_actions: SoftActionSettings = field(default_factory=SoftActionSettings)
    filters: FilterSettings = field(default_factory=FilterSettings)
    rate_limits: RateLimitSettings = field(default_factory=RateLimitSettings)
    raid: RaidSettings = field(default_factory=RaidSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    retention: RetentionSettings = field(default_factory=RetentionSettings)
    permissions: PermissionSettings = field(default_factory=PermissionSettings)
    defaults: DefaultSettings = field(default_factory=DefaultSettings)

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-ready document for this config."""
        return _group_to_dict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "ModerationConfig":
        """
        Build a config from a (possibly partial) document.

        Absent keys keep their defaults. Raises :class:`InvalidConfigError`
        when a present value has the wrong shape.
        """
        data = _require_mapping(data, "config")
        guild_id = data.get("guild_id")
        if guild_id is None:
            raise InvalidConfigError("config.guild_id is required")

        config = cls(guild_id=str(guild_id))
        if "log_channels" in data:
            config.log_channels = LogChannels.from_dict(data["log_channels"])
        if "escalation" in data:
            config.escalation = EscalationSettings.from_dict(data["escalation"])
        if "soft_actions" in data:
            config.soft_actions = _build_group(SoftActionSettings, data["soft_actions"], "soft_actions")
        if "filters" in data:
            config.filters = FilterSettings.from_dict(data["filters"])
        if "rate_limits" in data:
            config.rate_limits = _build_group(RateLimitSettings, data["rate_limits"], "rate_limits")
        if "raid" in data:
            config.raid = _build_group(RaidSettings, data["raid"], "raid")
        if "notifications" in data:
            config.notifications = _build_group(NotificationSettings, data["notifications"], "notifications")
        if "retention" in data:
            config.retention = _build_group(RetentionSettings, data["retention"], "retention")
        if "permissions" in data:
            config.permissions = _build_group(PermissionSettings, data["permissions"], "permissions")
        if "defaults" in data:
            config.defaults = _build_group(DefaultSettings, data["defaults"], "defaults")
        return config


def create_default_config(guild_id: str) -> ModerationConfig:
    """Return a fresh default configuration for ``guild_id``."""
    return ModerationConfig(guild_id=str(guild_id))


# ---------------------------------------------------------------------------
# Patch shape: the same document with every key optional
# ---------------------------------------------------------------------------

class LogChannelsPatch(TypedDict, total=False):
    moderation: Optional[str]
    cases: Optional[str]
    joins: Optional[str]
    leaves: Optional[str]
    name_changes: Optional[str]
    avatar_changes: Optional[str]
    message_deletes: Optional[str]
    message_edits: Optional[str]
    bans: Optional[str]
    unbans: Optional[str]
    timeouts: Optional[str]
    role_changes: Optional[str]


class EscalationActionPatch(TypedDict, total=False):
    kind: str
    reason: str
    duration_ms: int


class EscalationRulePatch(TypedDict, total=False):
    id: str
    threshold: int
    action: EscalationActionPatch
    note: Optional[str]


class EscalationPatch(TypedDict, total=False):
    warn: Optional[List[EscalationRulePatch]]


class SoftActionsPatch(TypedDict, total=False):
    allow_lock: bool
    allow_slowmode: bool
    allow_nick: bool
    default_slowmode_seconds: int
    default_lock_reason: str


class FilterActionsPatch(TypedDict, total=False):
    level1: EscalationActionPatch
    level2: EscalationActionPatch
    level3: EscalationActionPatch


class FiltersPatch(TypedDict, total=False):
    level: str
    review_queue_enabled: bool
    actions: FilterActionsPatch


class RateLimitsPatch(TypedDict, total=False):
    messages_per_second: int
    messages_per_minute: int
    caps_percentage: int
    emoji_limit: int
    mention_limit: int


class RaidPatch(TypedDict, total=False):
    spike_member_count: int
    spike_interval_minutes: int
    auto_slowmode_seconds: int
    auto_lock_duration_minutes: int
    require_verification: bool
    captcha_gate: bool


class NotificationsPatch(TypedDict, total=False):
    dm_on_action: bool
    dm_include_reason: bool


class RetentionPatch(TypedDict, total=False):
    case_retention_days: int
    log_retention_days: int
    anonymize_after_days: Optional[int]


class PermissionsPatch(TypedDict, total=False):
    super_admin_ids: List[str]
    role_overrides: Dict[str, List[str]]


class DefaultsPatch(TypedDict, total=False):
    timeout_minutes: int
    reasons: Dict[str, List[str]]


class ModerationConfigPatch(TypedDict, total=False):
    guild_id: str
    log_channels: LogChannelsPatch
    escalation: EscalationPatch
    soft_actions: SoftActionsPatch
    filters: FiltersPatch
    rate_limits: RateLimitsPatch
    raid: RaidPatch
    notifications: NotificationsPatch
    retention: RetentionPatch
    permissions: PermissionsPatch
    defaults: DefaultsPatch
