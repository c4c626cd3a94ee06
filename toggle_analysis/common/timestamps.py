"""Canonical timestamp handling for analysis windows.

Windows are exchanged as local wall-clock strings with second precision,
e.g. ``2024-03-01 09:30:00``. Server responses may use ISO-8601 instead.
"""

from datetime import datetime

CANONICAL_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a canonical or ISO-8601 timestamp into a naive local datetime.

    Aware datetimes are converted to local time and stripped of tzinfo so they
    compare against the naive values produced by the canonical format.

    Raises:
        ValueError: If ``value`` is not a recognizable timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if not text:
            raise ValueError("empty timestamp")
        try:
            parsed = datetime.strptime(text, CANONICAL_FORMAT)
        except ValueError:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))

    return to_local_naive(parsed).replace(microsecond=0)


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values are returned as-is."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def format_timestamp(value: str | datetime) -> str:
    """Return ``value`` in canonical ``YYYY-MM-DD HH:MM:SS`` form."""
    return parse_timestamp(value).strftime(CANONICAL_FORMAT)
