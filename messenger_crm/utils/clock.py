from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

GRAPH_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to an aware UTC datetime. Naive values are read as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_graph_time(value: Any) -> datetime | None:
    """
    Parse Graph API timestamps such as "2024-05-01T10:20:30+0000".
    ISO-8601 variants ("Z", "+00:00") are accepted too. Returns None when the
    value cannot be parsed.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return as_utc(datetime.strptime(text, GRAPH_TIME_FORMAT))
    except ValueError:
        pass
    try:
        return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        return None


def from_epoch_millis(value: Any) -> datetime | None:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def hours_between(earlier: datetime, later: datetime) -> float:
    return (as_utc(later) - as_utc(earlier)).total_seconds() / 3600
