from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values read back from backends that drop the offset."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_timestamp(previous: datetime) -> datetime:
    """Current UTC time, nudged past ``previous`` when the clock has not moved."""

    now = utcnow()
    previous = as_utc(previous)
    if now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def isoformat_now() -> str:
    return utcnow().isoformat()


def to_megabytes(value: int | float) -> float:
    return round(value / 1024 / 1024, 2)
