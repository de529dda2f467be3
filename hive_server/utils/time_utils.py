from datetime import datetime, timezone
from typing import Optional


def now_std() -> datetime:
    """Return the current time as a naive UTC datetime.

    MongoDB stores datetimes as naive UTC, so this is the form used for
    every persisted timestamp and for comparisons against stored values.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a stored datetime as an ISO-8601 string (UTC, 'Z' suffix)."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec='milliseconds') + 'Z'


def minutes_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 60.0
