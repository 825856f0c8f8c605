from unittest.mock import AsyncMock

import pytest

from modcase.datatypes.case_datatypes import CaseType, ModerationCaseRecord, Severity
from modcase.datatypes.moderation_config import LogCategory
from modcase.moderation.log_dispatcher import ModerationLogDispatcher, build_case_embed, format_case_title
from modcase.moderation.notifier import Notifier


def make_record(**overrides) -> ModerationCaseRecord:
    values = dict(
        id="case-1",
        guild_id="G1",
        type=CaseType.TIMEOUT,
        reason="Spam",
        target_id="U1",
        target_tag="User#0001",
        moderator_id="M1",
        moderator_tag="Mod#0001",
        created_at="2024-01-01T00:00:00+00:00",
        case_number=7,
        severity=Severity.HIGH,
        duration_ms=3_600_000,
    )
    values.update(overrides)
    return ModerationCaseRecord(**values)


@pytest.fixture
def notifier():
    return AsyncMock(spec=Notifier)


@pytest.fixture
def dispatcher(config_store, notifier):
    return ModerationLogDispatcher(config_store, notifier)


async def test_send_log_falls_back_to_moderation_channel(config_store, dispatcher, notifier):
    await config_store.update_config("G1", {"log_channels": {"moderation": "C1", "cases": None}})
    payload = {"content": "hello"}

    assert await dispatcher.send_log("G1", "cases", payload) is True
    notifier.post_message.assert_awaited_once_with("C1", payload)


async def test_send_log_prefers_category_channel(config_store, dispatcher, notifier):
    await config_store.update_config("G1", {"log_channels": {"moderation": "C1", "bans": "C9"}})

    assert await dispatcher.send_log("G1", LogCategory.BANS, {"content": "ban"}) is True
    notifier.post_message.assert_awaited_once_with("C9", {"content": "ban"})


async def test_send_log_without_channels_returns_false(dispatcher, notifier):
    assert await dispatcher.send_log("G1", "joins", {"content": "hi"}) is False
    notifier.post_message.assert_not_awaited()


async def test_send_log_delivery_failure_returns_false(config_store, dispatcher, notifier):
    await config_store.update_config("G1", {"log_channels": {"moderation": "C1"}})
    notifier.post_message.side_effect = RuntimeError("Missing Access")

    assert await dispatcher.send_log("G1", "moderation", {"content": "hi"}) is False


async def test_log_case_sends_embed_to_cases_channel(config_store, dispatcher, notifier):
    await config_store.update_config("G1", {"log_channels": {"cases": "C2"}})

    assert await dispatcher.log_case("G1", make_record(), guild_name="Testserver") is True

    channel_id, payload = notifier.post_message.await_args.args
    assert channel_id == "C2"
    embed = payload["embeds"][0]
    assert embed.title == "Fall #7: TIMEOUT"
    assert embed.footer.text == "Testserver"


def test_case_embed_fields():
    embed = build_case_embed(make_record(), additional_fields=[("Auslöser", "Automatisch")])

    fields = [(field.name, field.value) for field in embed.fields]
    assert fields == [
        ("Aktion", "TIMEOUT"),
        ("Ziel", "<@U1> (User#0001)"),
        ("Moderator", "<@M1> (Mod#0001)"),
        ("Grund", "Spam"),
        ("Dauer", "1 Stunde (endet <t:1704070800:R>)"),
        ("Schweregrad", "high"),
        ("Auslöser", "Automatisch"),
    ]
    assert [field.inline for field in embed.fields[:3]] == [True, True, True]


def test_case_embed_skips_empty_optional_fields():
    embed = build_case_embed(make_record(type=CaseType.WARN, reason="", severity=None, duration_ms=None))

    assert [field.name for field in embed.fields] == ["Aktion", "Ziel", "Moderator"]


def test_case_title_without_number():
    assert format_case_title(make_record(case_number=None, type=CaseType.BAN)) == "Moderationsfall: BAN"


async def test_send_log_unknown_category_returns_false(config_store, dispatcher, notifier):
    await config_store.update_config("G1", {"log_channels": {"moderation": "C1"}})

    assert await dispatcher.send_log("G1", "audit", {"content": "hi"}) is False
    notifier.post_message.assert_not_awaited()
