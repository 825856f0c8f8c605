"""
Caller side of the warn escalation protocol.

The case manager only recommends an escalation. This workflow records the
warn, logs it, notifies the target, applies the recommended action through
the :class:`Notifier`, and records a linked case once the action has taken
effect. An action the platform rejects is reported to the ``moderation`` log
category and leaves no case behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from modcase.datatypes.case_datatypes import (
    CaseType,
    EscalationResult,
    ModerationCaseInput,
    ModerationCaseRecord,
)
from modcase.datatypes.moderation_config import EscalationKind, LogCategory
from modcase.moderation.case_manager import CaseManager
from modcase.moderation.config_store import ModerationConfigStore
from modcase.moderation.log_dispatcher import ModerationLogDispatcher
from modcase.moderation.notifier import Notifier
from modcase.util.logger import get_logger

logger = get_logger("escalation_workflow")

SEVERITY_LABELS = {
    "low": "Niedrig",
    "medium": "Mittel",
    "high": "Hoch",
}

FAILURE_MESSAGES = {
    EscalationKind.TIMEOUT: "⚠️ Automatische Eskalation konnte nicht ausgeführt werden. "
                            "Bitte prüft die Berechtigungen für <@{target_id}>.",
    EscalationKind.BAN: "⚠️ Automatische Bann-Eskalation für <@{target_id}> fehlgeschlagen. "
                        "Bitte prüft die Berechtigungen.",
    EscalationKind.KICK: "⚠️ Automatische Kick-Eskalation für <@{target_id}> fehlgeschlagen. "
                         "Bitte prüft die Berechtigungen.",
}


@dataclass(slots=True)
class WarnOutcome:
    """What a warn produced: the warn case and, if one fired, the escalation."""

    case_record: ModerationCaseRecord
    escalation: Optional[EscalationResult] = None
    escalation_record: Optional[ModerationCaseRecord] = None
    escalation_applied: bool = False
    dm_sent: bool = False


def build_warn_dm(
    guild_name: str,
    moderator_tag: str,
    reason: str,
    severity: Optional[str],
    include_reason: bool,
) -> str:
    severity_value = severity or "low"
    lines = [
        f"Du wurdest auf **{guild_name}** verwarnt.",
        f"Moderator: {moderator_tag}",
        f"Schweregrad: {SEVERITY_LABELS.get(severity_value, severity_value)}",
    ]
    if include_reason:
        lines.append(f"Grund: {reason}")
    return "\n".join(lines)


class EscalationWorkflow:
    def __init__(
        self,
        case_manager: CaseManager,
        config_store: ModerationConfigStore,
        dispatcher: ModerationLogDispatcher,
        notifier: Notifier,
    ) -> None:
        self._case_manager = case_manager
        self._config_store = config_store
        self._dispatcher = dispatcher
        self._notifier = notifier

    async def warn(self, case_input: ModerationCaseInput, guild_name: str) -> WarnOutcome:
        """
        Record a warn and carry out any escalation it triggers.

        Args:
            case_input: The warn to record; ``type`` must be ``warn``.
            guild_name: Shown in the direct message and the log footer.

        Returns:
            WarnOutcome: the warn record, the escalation (if any) and the
            linked case created for it once applied.

        Raises:
            ValueError: ``case_input`` is not a warn.
            CaseWriteError: the warn or the linked escalation case could not
                be stored.
        """
        if CaseType(case_input.type) is not CaseType.WARN:
            raise ValueError(f"expected a warn case, got {case_input.type}")

        response = await self._case_manager.create_moderation_case(case_input)
        record = response.case_record
        outcome = WarnOutcome(case_record=record, escalation=response.escalation)

        await self._dispatcher.log_case(record.guild_id, record, guild_name=guild_name)
        outcome.dm_sent = await self._notify_target(record, guild_name)

        if response.escalation is None:
            return outcome

        outcome.escalation_applied = await self._apply(record, response.escalation)
        if not outcome.escalation_applied:
            return outcome

        linked_input = CaseManager.escalated_case_input(record, response.escalation)
        linked = await self._case_manager.create_moderation_case(linked_input)
        outcome.escalation_record = linked.case_record

        await self._dispatcher.log_case(
            record.guild_id,
            linked.case_record,
            additional_fields=[
                ("Auslöser", f"Automatische Eskalation nach {response.escalation.trigger_count} Verwarnungen."),
            ],
            guild_name=guild_name,
        )
        return outcome

    async def _notify_target(self, record: ModerationCaseRecord, guild_name: str) -> bool:
        config = await self._config_store.fetch_config(record.guild_id)
        if not config.notifications.dm_on_action:
            return False

        content = build_warn_dm(
            guild_name,
            record.moderator_tag,
            record.reason,
            record.severity.value if record.severity else None,
            config.notifications.dm_include_reason,
        )
        try:
            await self._notifier.send_direct_message(record.target_id, {"content": content})
        except Exception as exc:
            # Closed DMs are expected.
            logger.debug("[ESCALATION] Could not DM %s in guild %s: %s", record.target_id, record.guild_id, exc)
            return False
        return True

    async def _apply(self, record: ModerationCaseRecord, escalation: EscalationResult) -> bool:
        action = escalation.action
        reason = f"{action.reason} (ausgelöst durch {record.moderator_tag})"

        try:
            if action.kind is EscalationKind.TIMEOUT:
                await self._notifier.apply_timeout(record.guild_id, record.target_id, action.duration_ms, reason)
            elif action.kind is EscalationKind.BAN:
                await self._notifier.apply_ban(record.guild_id, record.target_id, reason)
            else:
                await self._notifier.apply_kick(record.guild_id, record.target_id, reason)
        except Exception:
            logger.exception(
                "[ESCALATION] Failed to apply %s for %s in guild %s (rule %s)",
                action.kind, record.target_id, record.guild_id, escalation.rule.id,
            )
            await self._dispatcher.send_log(
                record.guild_id,
                LogCategory.MODERATION,
                {"content": FAILURE_MESSAGES[action.kind].format(target_id=record.target_id)},
                log_tag="WARN ESCALATION",
            )
            return False

        logger.info(
            "[ESCALATION] Applied %s to %s in guild %s after %d warns",
            action.kind, record.target_id, record.guild_id, escalation.trigger_count,
        )
        return True
