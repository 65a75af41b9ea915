from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return utcnow().replace(microsecond=0).isoformat().replace("+00:00", "Z")


def to_timestamp(dt: datetime) -> float:
    """Seconds since the epoch; naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def to_epoch(dt: datetime) -> int:
    """Whole seconds since the epoch (JWT NumericDate)."""
    return int(to_timestamp(dt))


def from_epoch(ts: int | float) -> datetime:
    return datetime.fromtimestamp(float(ts), tz=timezone.utc)
