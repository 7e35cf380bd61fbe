from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_hhmm(value: str) -> time:
    """Parse HH:MM string into time."""
    return datetime.strptime(value.strip(), "%H:%M").time()


def parse_utc_offset(value: str) -> timedelta:
    """Parse a fixed UTC offset such as ``+05:45`` or ``-03:30``."""
    raw = value.strip()
    if raw.upper() in {"Z", "UTC"}:
        return timedelta(0)
    sign = -1 if raw.startswith("-") else 1
    hours, _, minutes = raw.lstrip("+-").partition(":")
    try:
        offset = timedelta(hours=int(hours), minutes=int(minutes or 0))
    except ValueError:
        raise ValueError(f"Invalid UTC offset: {value!r}")
    if offset >= timedelta(hours=24):
        raise ValueError(f"Invalid UTC offset: {value!r}")
    return sign * offset


def now_utc() -> datetime:
    """Current aware UTC time.

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """MySQL DATETIME columns store naive UTC."""
    if value is None:
        return None
    return as_utc(value).replace(tzinfo=None)


def hours_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 3600


def format_elapsed(start: datetime, end: datetime) -> str:
    """HH:MM:SS elapsed since ``start``; negative spans clamp to zero."""
    seconds = max(0, int((as_utc(end) - as_utc(start)).total_seconds()))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value else None
