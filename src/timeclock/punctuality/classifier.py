from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from ..common.datetime_utils import as_utc, parse_hhmm, parse_utc_offset


@dataclass(frozen=True)
class Punctuality:
    """Outcome of classifying one check-in instant."""

    is_late: bool
    late_minutes: Optional[int]
    local_time: datetime
    work_date: date


@dataclass(frozen=True)
class PunctualityPolicy:
    """Daily cutoff on the wall clock of a fixed-offset reference timezone.

    The offset is applied as-is (minute precision), so zones such as UTC+05:45
    are handled without rounding to hours or half hours. The cutoff minute
    itself already counts as late.
    """

    cutoff: time
    utc_offset: timedelta

    @classmethod
    def from_settings(cls, *, late_cutoff: str, utc_offset: str) -> "PunctualityPolicy":
        return cls(cutoff=parse_hhmm(late_cutoff), utc_offset=parse_utc_offset(utc_offset))

    @property
    def cutoff_minutes(self) -> int:
        return self.cutoff.hour * 60 + self.cutoff.minute

    def to_local(self, instant: datetime) -> datetime:
        """Reference wall-clock time as a naive datetime."""
        return as_utc(instant).replace(tzinfo=None) + self.utc_offset

    def local_date(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def classify(self, instant: datetime) -> Punctuality:
        local = self.to_local(instant)
        hour, minute = local.hour, local.minute
        is_late = hour > self.cutoff.hour or (hour == self.cutoff.hour and minute >= self.cutoff.minute)

        late_minutes = None
        if is_late:
            late_minutes = (hour * 60 + minute) - self.cutoff_minutes

        return Punctuality(
            is_late=is_late,
            late_minutes=late_minutes,
            local_time=local,
            work_date=local.date(),
        )

