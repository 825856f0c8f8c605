"""
Routing of moderation log output to per-category channels.

A category without its own channel falls back to the ``moderation``
channel. A guild without either is a normal situation: the dispatcher warns
and reports ``False`` instead of raising, so logging never blocks the case
recording flow. Delivery failures are handled the same way.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import discord

from modcase.datatypes.case_datatypes import ModerationCaseRecord
from modcase.datatypes.moderation_config import LogCategory
from modcase.moderation.config_store import ModerationConfigStore
from modcase.moderation.notifier import MessagePayload, Notifier
from modcase.util.format_utils import format_duration, parse_iso_timestamp, relative_timestamp
from modcase.util.logger import get_logger

logger = get_logger("moderation_log")

EmbedField = Tuple[str, str]


def format_case_title(record: ModerationCaseRecord) -> str:
    prefix = f"Fall #{record.case_number}" if record.case_number else "Moderationsfall"
    return f"{prefix}: {record.type.value.upper()}"


def build_case_embed(
    record: ModerationCaseRecord,
    guild_name: Optional[str] = None,
    additional_fields: Sequence[EmbedField] = (),
) -> discord.Embed:
    """
    Build the case log embed.

    Fields: action, target and moderator inline, then reason, duration with
    its relative end time, severity and any extra fields supplied by the
    caller.
    """
    embed = discord.Embed(
        title=format_case_title(record),
        color=discord.Color.blurple(),
        timestamp=parse_iso_timestamp(record.created_at),
    )
    embed.add_field(name="Aktion", value=record.type.value.upper(), inline=True)
    embed.add_field(name="Ziel", value=f"<@{record.target_id}> ({record.target_tag})", inline=True)
    embed.add_field(name="Moderator", value=f"<@{record.moderator_id}> ({record.moderator_tag})", inline=True)

    if record.reason:
        embed.add_field(name="Grund", value=record.reason, inline=False)

    if record.duration_ms and record.duration_ms > 0:
        formatted = format_duration(record.duration_ms) or f"{round(record.duration_ms / 1000)} Sekunden"
        ends = relative_timestamp(record.created_at, record.duration_ms)
        embed.add_field(name="Dauer", value=f"{formatted} (endet {ends})", inline=False)

    if record.severity:
        embed.add_field(name="Schweregrad", value=record.severity.value, inline=False)

    for name, value in additional_fields:
        embed.add_field(name=name, value=value, inline=False)

    if guild_name:
        embed.set_footer(text=guild_name)
    return embed


class ModerationLogDispatcher:
    """Sends log payloads to the channel configured for their category."""

    def __init__(self, config_store: ModerationConfigStore, notifier: Notifier) -> None:
        self._config_store = config_store
        self._notifier = notifier

    async def resolve_channel(self, guild_id: str, category: LogCategory | str) -> Optional[str]:
        """Channel id for ``category``, falling back to the moderation channel."""
        config = await self._config_store.fetch_config(guild_id)
        channel_id = config.log_channels.get(category)
        if channel_id is None:
            channel_id = config.log_channels.moderation
        return channel_id or None

    async def send_log(
        self,
        guild_id: str,
        category: LogCategory | str,
        payload: MessagePayload,
        log_tag: Optional[str] = None,
    ) -> bool:
        """
        Deliver ``payload`` to the category's channel.

        Returns:
            bool: True when delivered; False when the category is unknown, no
            channel is configured or delivery failed.
        """
        tag = log_tag or "MODERATION LOG"
        try:
            category = LogCategory(category)
        except ValueError:
            logger.warning("[%s] Unknown log category %r for guild %s", tag, category, guild_id)
            return False

        channel_id = await self.resolve_channel(guild_id, category)
        if channel_id is None:
            logger.warning("[%s] No log channel configured for %s in guild %s", tag, category, guild_id)
            return False

        try:
            await self._notifier.post_message(channel_id, payload)
        except Exception:
            logger.exception("[%s] Failed to send %s log to channel %s in guild %s", tag, category, channel_id, guild_id)
            return False
        return True

    async def log_case(
        self,
        guild_id: str,
        record: ModerationCaseRecord,
        additional_fields: Sequence[EmbedField] = (),
        guild_name: Optional[str] = None,
    ) -> bool:
        """Format ``record`` as an embed and send it to the ``cases`` category."""
        embed = build_case_embed(record, guild_name=guild_name, additional_fields=additional_fields)
        return await self.send_log(guild_id, LogCategory.CASES, {"embeds": [embed]}, log_tag="MODERATION CASE")
