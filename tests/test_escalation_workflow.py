from unittest.mock import AsyncMock

import pytest

from modcase.datatypes.case_datatypes import CaseType, ModerationCaseInput, Severity
from modcase.moderation.escalation_workflow import EscalationWorkflow, build_warn_dm
from modcase.moderation.log_dispatcher import ModerationLogDispatcher
from modcase.moderation.notifier import Notifier


def warn_input(reason: str = "Spam", severity: Severity | None = None) -> ModerationCaseInput:
    return ModerationCaseInput(
        guild_id="G1",
        type=CaseType.WARN,
        target_id="U1",
        target_tag="User#0001",
        moderator_id="M1",
        moderator_tag="Mod#0001",
        reason=reason,
        severity=severity,
    )


@pytest.fixture
def notifier():
    return AsyncMock(spec=Notifier)


@pytest.fixture
async def workflow(case_manager, config_store, notifier):
    await config_store.update_config("G1", {"log_channels": {"moderation": "C1", "cases": "C2"}})
    dispatcher = ModerationLogDispatcher(config_store, notifier)
    return EscalationWorkflow(case_manager, config_store, dispatcher, notifier)


async def test_warn_below_threshold_logs_and_notifies(workflow, notifier):
    outcome = await workflow.warn(warn_input(severity=Severity.MEDIUM), "Testserver")

    assert outcome.escalation is None
    assert outcome.dm_sent is True
    channel_id, payload = notifier.post_message.await_args.args
    assert channel_id == "C2"
    assert payload["embeds"][0].title == "Fall #1: WARN"

    user_id, dm = notifier.send_direct_message.await_args.args
    assert user_id == "U1"
    assert dm["content"] == (
        "Du wurdest auf **Testserver** verwarnt.\n"
        "Moderator: Mod#0001\n"
        "Schweregrad: Mittel\n"
        "Grund: Spam"
    )


async def test_third_warn_applies_timeout_and_records_linked_case(workflow, notifier, case_manager):
    for reason in ("eins", "zwei"):
        await workflow.warn(warn_input(reason), "Testserver")

    outcome = await workflow.warn(warn_input("drei"), "Testserver")

    notifier.apply_timeout.assert_awaited_once_with(
        "G1", "U1", 3_600_000, "Automatische Auszeit nach 3 Verwarnungen. (ausgelöst durch Mod#0001)"
    )
    assert outcome.escalation_applied is True
    linked = outcome.escalation_record
    assert linked.type is CaseType.TIMEOUT
    assert linked.case_number == 4
    assert linked.metadata["source_case_id"] == outcome.case_record.id
    assert linked.metadata["trigger_count"] == 3

    _, payload = notifier.post_message.await_args.args
    embed = payload["embeds"][0]
    assert embed.title == "Fall #4: TIMEOUT"
    assert (embed.fields[-1].name, embed.fields[-1].value) == (
        "Auslöser",
        "Automatische Eskalation nach 3 Verwarnungen.",
    )
    assert len(await case_manager.list_cases("G1", "U1")) == 4


async def test_rejected_escalation_posts_warning_without_case(workflow, notifier, case_manager):
    notifier.apply_timeout.side_effect = RuntimeError("Missing Permissions")

    for _ in range(3):
        outcome = await workflow.warn(warn_input(), "Testserver")

    assert outcome.escalation is not None
    assert outcome.escalation_applied is False
    assert outcome.escalation_record is None
    assert await case_manager.count_cases("G1", "U1", CaseType.TIMEOUT) == 0

    channel_id, payload = notifier.post_message.await_args.args
    assert channel_id == "C1"
    assert "<@U1>" in payload["content"]
    assert payload["content"].startswith("⚠️ Automatische Eskalation")


async def test_kick_ladder_uses_apply_kick(workflow, notifier, config_store):
    await config_store.update_config(
        "G1",
        {"escalation": {"warn": [{"id": "warn-2-kick", "threshold": 2, "action": {"kind": "kick", "reason": "Kick"}}]}},
    )

    await workflow.warn(warn_input(), "Testserver")
    outcome = await workflow.warn(warn_input(), "Testserver")

    notifier.apply_kick.assert_awaited_once_with("G1", "U1", "Kick (ausgelöst durch Mod#0001)")
    notifier.apply_timeout.assert_not_awaited()
    assert outcome.escalation_record.type is CaseType.KICK
    assert outcome.escalation_record.duration_ms is None


async def test_dm_respects_notification_settings(workflow, notifier, config_store):
    await config_store.update_config("G1", {"notifications": {"dm_on_action": False}})

    outcome = await workflow.warn(warn_input(), "Testserver")

    assert outcome.dm_sent is False
    notifier.send_direct_message.assert_not_awaited()


async def test_dm_failure_does_not_abort_warn(workflow, notifier):
    notifier.send_direct_message.side_effect = RuntimeError("Cannot send messages to this user")

    outcome = await workflow.warn(warn_input(), "Testserver")

    assert outcome.dm_sent is False
    assert outcome.case_record.case_number == 1


async def test_warn_rejects_other_case_types(workflow):
    case = warn_input()
    case.type = CaseType.BAN

    with pytest.raises(ValueError):
        await workflow.warn(case, "Testserver")


def test_warn_dm_without_reason():
    content = build_warn_dm("Server", "Mod#0001", "Spam", None, include_reason=False)

    assert "Grund" not in content
    assert "Schweregrad: Niedrig" in content
