"""
Chat-gateway port used by the moderation core.

:class:`Notifier` is the contract the dispatcher and the escalation workflow
depend on. :class:`DiscordNotifier` implements it on top of a py-cord client;
tests substitute ``AsyncMock`` objects.
"""

from __future__ import annotations

import datetime
from abc import ABC, abstractmethod
from typing import List, TypedDict

import discord

from modcase.util.logger import get_logger

logger = get_logger("notifier")


class MessagePayload(TypedDict, total=False):
    content: str
    embeds: List[discord.Embed]


class Notifier(ABC):
    """
    Outbound operations against the chat platform.

    Every method is independently fallible and raises on failure; callers
    decide whether a failure is fatal.
    """

    @abstractmethod
    async def post_message(self, channel_id: str, payload: MessagePayload) -> None:
        ...

    @abstractmethod
    async def send_direct_message(self, user_id: str, payload: MessagePayload) -> None:
        ...

    @abstractmethod
    async def apply_timeout(self, guild_id: str, target_id: str, duration_ms: int, reason: str) -> None:
        ...

    @abstractmethod
    async def apply_ban(self, guild_id: str, target_id: str, reason: str) -> None:
        ...

    @abstractmethod
    async def apply_kick(self, guild_id: str, target_id: str, reason: str) -> None:
        ...


class DiscordNotifier(Notifier):
    """:class:`Notifier` backed by a connected ``discord.Bot``."""

    def __init__(self, bot: discord.Client) -> None:
        self._bot = bot

    async def _guild(self, guild_id: str) -> discord.Guild:
        guild = self._bot.get_guild(int(guild_id))
        if guild is None:
            guild = await self._bot.fetch_guild(int(guild_id))
        return guild

    async def _member(self, guild_id: str, user_id: str) -> discord.Member:
        guild = await self._guild(guild_id)
        member = guild.get_member(int(user_id))
        if member is None:
            member = await guild.fetch_member(int(user_id))
        return member

    async def post_message(self, channel_id: str, payload: MessagePayload) -> None:
        channel = self._bot.get_channel(int(channel_id))
        if channel is None:
            channel = await self._bot.fetch_channel(int(channel_id))
        if not isinstance(channel, discord.abc.Messageable):
            raise LookupError(f"channel {channel_id} is not a text channel")
        await channel.send(content=payload.get("content"), embeds=payload.get("embeds") or None)

    async def send_direct_message(self, user_id: str, payload: MessagePayload) -> None:
        user = self._bot.get_user(int(user_id))
        if user is None:
            user = await self._bot.fetch_user(int(user_id))
        await user.send(content=payload.get("content"), embeds=payload.get("embeds") or None)

    async def apply_timeout(self, guild_id: str, target_id: str, duration_ms: int, reason: str) -> None:
        member = await self._member(guild_id, target_id)
        until = discord.utils.utcnow() + datetime.timedelta(milliseconds=duration_ms)
        await member.timeout(until, reason=reason)
        logger.debug("[NOTIFIER] Timed out %s in guild %s for %dms", target_id, guild_id, duration_ms)

    async def apply_ban(self, guild_id: str, target_id: str, reason: str) -> None:
        guild = await self._guild(guild_id)
        await guild.ban(discord.Object(id=int(target_id)), reason=reason, delete_message_seconds=0)
        logger.debug("[NOTIFIER] Banned %s in guild %s", target_id, guild_id)

    async def apply_kick(self, guild_id: str, target_id: str, reason: str) -> None:
        guild = await self._guild(guild_id)
        await guild.kick(discord.Object(id=int(target_id)), reason=reason)
        logger.debug("[NOTIFIER] Kicked %s in guild %s", target_id, guild_id)
