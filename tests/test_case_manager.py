import asyncio

import pytest

from modcase.database.db_connection import ConnectionManager
from modcase.datatypes.case_datatypes import CaseType, ModerationCaseInput, Severity
from modcase.datatypes.moderation_config import EscalationKind
from modcase.errors import CaseWriteError, StorageError
from modcase.moderation.case_manager import CaseManager
from modcase.repositories.moderation_case_repo import ModerationCaseRepo


def case_input(case_type: CaseType = CaseType.WARN, target_id: str = "U1", reason: str = "Spam", **kwargs) -> ModerationCaseInput:
    return ModerationCaseInput(
        guild_id=kwargs.pop("guild_id", "G1"),
        type=case_type,
        target_id=target_id,
        target_tag=f"{target_id}#0001",
        moderator_id="M1",
        moderator_tag="Mod#0001",
        reason=reason,
        **kwargs,
    )


async def test_cold_guild_escalates_on_third_warn(case_manager):
    first = await case_manager.create_moderation_case(case_input(reason="Erste"))
    second = await case_manager.create_moderation_case(case_input(reason="Zweite"))
    third = await case_manager.create_moderation_case(case_input(reason="Dritte"))

    assert first.escalation is None
    assert second.escalation is None

    escalation = third.escalation
    assert escalation is not None
    assert escalation.rule.id == "warn-3-timeout-1h"
    assert escalation.trigger_count == 3
    assert escalation.action.kind is EscalationKind.TIMEOUT
    assert escalation.action.duration_ms == 3_600_000
    assert escalation.source_case_id == third.case_record.id


async def test_warns_are_counted_per_target_and_guild(case_manager):
    for _ in range(2):
        await case_manager.create_moderation_case(case_input(target_id="U1"))
    await case_manager.create_moderation_case(case_input(target_id="U2"))
    await case_manager.create_moderation_case(case_input(target_id="U1", guild_id="G2"))

    response = await case_manager.create_moderation_case(case_input(target_id="U2"))

    assert response.escalation is None
    assert await case_manager.count_cases("G1", "U1", CaseType.WARN) == 2


async def test_fifth_warn_recommends_ban_and_fourth_nothing(case_manager):
    responses = [await case_manager.create_moderation_case(case_input()) for _ in range(6)]

    fired = [(r.escalation.trigger_count, r.escalation.rule.id) for r in responses if r.escalation]
    assert fired == [(3, "warn-3-timeout-1h"), (5, "warn-5-ban")]


async def test_non_warn_cases_never_escalate(case_manager):
    for _ in range(3):
        response = await case_manager.create_moderation_case(case_input(CaseType.MUTE, duration_ms=60_000))
        assert response.escalation is None


async def test_case_numbers_are_sequential_per_guild(case_manager):
    first = await case_manager.create_moderation_case(case_input())
    second = await case_manager.create_moderation_case(case_input(CaseType.KICK))
    other_guild = await case_manager.create_moderation_case(case_input(guild_id="G2"))

    assert (first.case_record.case_number, second.case_record.case_number) == (1, 2)
    assert other_guild.case_record.case_number == 1


async def test_record_fields_are_persisted(case_manager):
    response = await case_manager.create_moderation_case(
        case_input(severity=Severity.HIGH, metadata={"command": "warn"})
    )

    stored = await case_manager.get_case(response.case_record.id)

    assert stored == response.case_record
    assert stored.severity is Severity.HIGH
    assert stored.metadata == {"command": "warn"}
    assert stored.created_at


async def test_escalated_case_input_links_source_case(case_manager):
    for _ in range(2):
        await case_manager.create_moderation_case(case_input())
    third = await case_manager.create_moderation_case(case_input())

    linked_input = CaseManager.escalated_case_input(third.case_record, third.escalation)
    linked = await case_manager.create_moderation_case(linked_input)

    record = linked.case_record
    assert record.type is CaseType.TIMEOUT
    assert record.duration_ms == 3_600_000
    assert record.reason == "Automatische Auszeit nach 3 Verwarnungen."
    assert record.metadata == {
        "escalation_rule_id": "warn-3-timeout-1h",
        "trigger_count": 3,
        "source_case_id": third.case_record.id,
    }
    assert linked.escalation is None
    assert await case_manager.count_cases("G1", "U1", CaseType.WARN) == 3


async def test_custom_ladder_from_config(case_manager, config_store):
    await config_store.update_config(
        "G1",
        {"escalation": {"warn": [{"id": "warn-1-kick", "threshold": 1, "action": {"kind": "kick", "reason": "Raus"}}]}},
    )

    response = await case_manager.create_moderation_case(case_input())

    assert response.escalation.rule.id == "warn-1-kick"
    assert CaseManager.escalated_case_input(response.case_record, response.escalation).duration_ms is None


async def test_concurrent_warns_fire_rule_once(case_manager):
    await case_manager.create_moderation_case(case_input())

    responses = await asyncio.gather(*(case_manager.create_moderation_case(case_input()) for _ in range(3)))

    counts = sorted(r.escalation.trigger_count for r in responses if r.escalation)
    assert counts == [3]


async def test_case_write_failure_propagates(config_store):
    manager = CaseManager(ConnectionManager(), config_store)

    with pytest.raises(CaseWriteError):
        await manager.create_moderation_case(case_input())


async def test_count_failure_skips_escalation(case_manager, monkeypatch):
    async def broken_count(*args, **kwargs):
        raise StorageError("read failed")

    monkeypatch.setattr(case_manager, "count_cases", broken_count)

    for _ in range(3):
        response = await case_manager.create_moderation_case(case_input())

    assert response.escalation is None


async def test_list_cases_newest_first_with_type_filter(case_manager):
    await case_manager.create_moderation_case(case_input(reason="eins"))
    await case_manager.create_moderation_case(case_input(CaseType.KICK, reason="zwei"))
    await case_manager.create_moderation_case(case_input(reason="drei"))

    all_cases = await case_manager.list_cases("G1", "U1")
    warns = await case_manager.list_cases("G1", "U1", CaseType.WARN, limit=1)

    assert [case.reason for case in all_cases] == ["drei", "zwei", "eins"]
    assert [case.reason for case in warns] == ["drei"]


async def test_get_case_unknown_id_returns_none(case_manager):
    assert await case_manager.get_case("missing") is None


class SlowCountRepo(ModerationCaseRepo):
    """Widens the gap between inserting a warn and counting it."""

    @staticmethod
    async def count(conn, guild_id, target_id, case_type):
        await asyncio.sleep(0.05)
        return await ModerationCaseRepo.count(conn, guild_id, target_id, case_type)


async def test_string_warn_type_is_serialized(db, config_store):
    manager = CaseManager(db, config_store, repo=SlowCountRepo())
    for _ in range(2):
        await manager.create_moderation_case(case_input("warn"))

    responses = await asyncio.gather(*(manager.create_moderation_case(case_input("warn")) for _ in range(2)))

    assert [r.escalation.trigger_count for r in responses if r.escalation] == [3]
    assert all(r.case_record.type is CaseType.WARN for r in responses)


async def test_string_severity_is_stored_as_enum(case_manager):
    response = await case_manager.create_moderation_case(case_input(severity="high"))

    assert response.case_record.severity is Severity.HIGH
    stored = await case_manager.get_case(response.case_record.id)
    assert stored.severity is Severity.HIGH


async def test_unknown_case_type_is_rejected_before_writing(case_manager):
    with pytest.raises(ValueError):
        await case_manager.create_moderation_case(case_input("mute"))

    assert await case_manager.list_cases("G1", "U1") == []


async def test_target_locks_are_released_after_warns(case_manager):
    for target_id in ("U1", "U2", "U3"):
        await case_manager.create_moderation_case(case_input(target_id=target_id))
    await asyncio.gather(*(case_manager.create_moderation_case(case_input()) for _ in range(3)))

    assert case_manager._per_target_locks == {}
