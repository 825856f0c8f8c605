"""
Moderation case records and the results returned by the case manager.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from modcase.datatypes.moderation_config import EscalationAction, EscalationRule


class CaseType(str, Enum):
    """Kinds of moderation actions that are recorded as cases."""

    WARN = "warn"
    MUTE = "mute"
    TIMEOUT = "timeout"
    BAN = "ban"
    KICK = "kick"
    CLEAR = "clear"
    LOCK = "lock"
    SLOWMODE = "slowmode"
    NICK = "nick"

    def __str__(self) -> str:
        return self.value


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ModerationCaseInput:
    """Everything a caller supplies to record a case."""

    guild_id: str
    type: CaseType
    target_id: str
    target_tag: str
    moderator_id: str
    moderator_tag: str
    reason: str
    severity: Optional[Severity] = None
    duration_ms: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True, slots=True)
class ModerationCaseRecord:
    """
    A persisted moderation case. Records are append-only and never mutated.

    ``case_number`` is the per-guild sequence number and may be ``None`` for
    rows written without a sequence value.
    """

    id: str
    guild_id: str
    type: CaseType
    reason: str
    target_id: str
    target_tag: str
    moderator_id: str
    moderator_tag: str
    created_at: str
    case_number: Optional[int] = None
    severity: Optional[Severity] = None
    duration_ms: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    resolved_at: Optional[str] = None


@dataclass(frozen=True, slots=True)
class EscalationResult:
    """
    Automated follow-up recommended by the case manager.

    The case manager never applies the action itself. The caller applies it
    against the chat platform and, on success, records a linked case built by
    :meth:`modcase.moderation.case_manager.CaseManager.escalated_case_input`.
    """

    rule: EscalationRule
    action: EscalationAction
    trigger_count: int
    source_case_id: str


@dataclass(frozen=True, slots=True)
class ModerationCaseResponse:
    case_record: ModerationCaseRecord
    escalation: Optional[EscalationResult] = None
