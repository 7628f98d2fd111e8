from __future__ import annotations
from datetime import datetime, timedelta, timezone as dt_tz


def utcnow() -> datetime:
    return datetime.now(dt_tz.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes read back from drivers that drop the offset
    (SQLite); aware values are converted. Every stored timestamp is UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_tz.utc)
    return dt.astimezone(dt_tz.utc)


def end_time_after(minutes: int, now: datetime | None = None) -> datetime:
    return (now or utcnow()) + timedelta(minutes=minutes)
