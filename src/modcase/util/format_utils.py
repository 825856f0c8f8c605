import math
from datetime import datetime, timedelta, timezone


def _plural(value: int, singular: str, plural: str) -> str:
    return f"{value} {singular if value == 1 else plural}"


def format_duration(duration_ms: int) -> str:
    """Render a millisecond duration as German text, e.g. ``"1 Tag 2 Stunden"``.

    Seconds are only shown when the duration is shorter than a minute.
    Returns an empty string for zero or negative durations.
    """
    total_seconds = max(0, math.floor(duration_ms / 1000 + 0.5))
    total_minutes, seconds = divmod(total_seconds, 60)
    hours, minutes = divmod(total_minutes, 60)
    days, remaining_hours = divmod(hours, 24)

    parts = []
    if days > 0:
        parts.append(_plural(days, "Tag", "Tage"))
    if remaining_hours > 0:
        parts.append(_plural(remaining_hours, "Stunde", "Stunden"))
    if minutes > 0:
        parts.append(_plural(minutes, "Minute", "Minuten"))
    if not parts and seconds > 0:
        parts.append(_plural(seconds, "Sekunde", "Sekunden"))

    return " ".join(parts)


def parse_iso_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def relative_timestamp(created_at: str, offset_ms: int = 0) -> str:
    """Discord relative timestamp markup (``<t:...:R>``) for ``created_at + offset_ms``."""
    moment = parse_iso_timestamp(created_at) + timedelta(milliseconds=offset_ms)
    return f"<t:{int(moment.timestamp())}:R>"
