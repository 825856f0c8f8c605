from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from modcase.moderation.notifier import DiscordNotifier


@pytest.fixture
def guild():
    guild = MagicMock()
    guild.ban = AsyncMock()
    guild.kick = AsyncMock()
    guild.fetch_member = AsyncMock()
    return guild


@pytest.fixture
def bot(guild):
    bot = MagicMock()
    bot.get_guild.return_value = guild
    return bot


async def test_post_message_fetches_uncached_channel(bot):
    channel = MagicMock(spec=discord.TextChannel)
    channel.send = AsyncMock()
    bot.get_channel.return_value = None
    bot.fetch_channel = AsyncMock(return_value=channel)

    await DiscordNotifier(bot).post_message("123", {"content": "hallo"})

    bot.fetch_channel.assert_awaited_once_with(123)
    channel.send.assert_awaited_once_with(content="hallo", embeds=None)


async def test_post_message_rejects_non_text_channel(bot):
    bot.get_channel.return_value = MagicMock(spec=discord.CategoryChannel)

    with pytest.raises(LookupError):
        await DiscordNotifier(bot).post_message("123", {"content": "hallo"})


async def test_apply_timeout_uses_member_timeout(bot, guild):
    member = MagicMock()
    member.timeout = AsyncMock()
    guild.get_member.return_value = member

    await DiscordNotifier(bot).apply_timeout("1", "2", 60_000, "Spam")

    guild.get_member.assert_called_once_with(2)
    until = member.timeout.await_args.args[0]
    assert until > discord.utils.utcnow()
    assert member.timeout.await_args.kwargs == {"reason": "Spam"}


async def test_apply_ban_and_kick_use_object_ids(bot, guild):
    notifier = DiscordNotifier(bot)

    await notifier.apply_ban("1", "2", "Bann")
    await notifier.apply_kick("1", "3", "Kick")

    banned = guild.ban.await_args
    assert banned.args[0].id == 2
    assert banned.kwargs == {"reason": "Bann", "delete_message_seconds": 0}
    assert guild.kick.await_args.args[0].id == 3


async def test_send_direct_message_falls_back_to_fetch(bot):
    user = MagicMock()
    user.send = AsyncMock()
    bot.get_user.return_value = None
    bot.fetch_user = AsyncMock(return_value=user)

    await DiscordNotifier(bot).send_direct_message("42", {"content": "Hinweis"})

    bot.fetch_user.assert_awaited_once_with(42)
    user.send.assert_awaited_once_with(content="Hinweis", embeds=None)
