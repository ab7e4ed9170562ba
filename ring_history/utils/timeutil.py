# ring_history/utils/timeutil.py
"""
Timestamp helpers. Everything stored in the database is naive UTC, so values
coming from the Ring API (ISO strings with offsets, epoch seconds, epoch
milliseconds) are normalised here before they are compared or persisted.
"""

from datetime import datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into naive UTC. None if unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        return to_naive_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        return None


def from_epoch_seconds(seconds: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        return None


def from_epoch_millis(millis: float) -> Optional[datetime]:
    return from_epoch_seconds(millis / 1000)


def to_epoch_millis(value: datetime) -> int:
    return int(to_naive_utc(value).replace(tzinfo=timezone.utc).timestamp() * 1000)
