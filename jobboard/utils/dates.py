"""
Datetime helpers for values read back through raw SQL.

PostgreSQL returns datetime objects; SQLite returns ISO strings.
"""

from datetime import datetime, timezone
from typing import Optional


def as_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text_value = str(value).replace("T", " ")
    # drop any UTC offset, stored values are naive UTC
    if text_value.endswith("Z"):
        text_value = text_value[:-1]
    if len(text_value) > 19 and text_value[-6] in "+-" and text_value[-3] == ":":
        text_value = text_value[:-6]
    return datetime.fromisoformat(text_value)


def is_past(value, now: Optional[datetime] = None) -> bool:
    moment = as_datetime(value)
    return moment is not None and moment < (now or datetime.utcnow())


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise client-supplied datetimes to naive UTC before storing."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
