"""UTC instant helpers.

Instants are persisted as naive UTC datetimes so that SQLite and PostgreSQL
compare them the same way.
"""
from datetime import datetime

import pytz


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime."""
    return datetime.now(pytz.utc).replace(tzinfo=None)


def normalize_instant(value) -> datetime:
    """
    Coerce a datetime or ISO-8601 string into a naive UTC datetime.

    Raises:
        ValueError: if the value is not a datetime or a parseable ISO string
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise ValueError(f"Expected a datetime, got {type(value).__name__}")
    if value.tzinfo is not None:
        value = value.astimezone(pytz.utc).replace(tzinfo=None)
    return value
