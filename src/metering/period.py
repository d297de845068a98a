"""Billing period boundaries.

Only calendar months are modeled. Anything that needs a different cadence
should swap ``current_period`` for another function with the same signature.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone


@dataclass(frozen=True)
class BillingPeriod:
    """An inclusive [start, end] range of UTC calendar days."""

    start: date
    end: date

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    @property
    def ends_at(self) -> datetime:
        # 23:59:59.999, millisecond precision like the stored timestamps
        return datetime.combine(self.end, time(23, 59, 59, 999_000), tzinfo=timezone.utc)

    def contains(self, moment: datetime) -> bool:
        return self.starts_at <= _as_utc(moment) <= self.ends_at


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def current_period(now: datetime) -> BillingPeriod:
    """Calendar month containing ``now`` in UTC.

    Naive datetimes are taken to be UTC already. The last day is found by
    stepping back one day from the first of the following month, so leap
    Februaries need no special case.
    """
    utc = _as_utc(now)
    start = date(utc.year, utc.month, 1)
    if utc.month == 12:
        next_start = date(utc.year + 1, 1, 1)
    else:
        next_start = date(utc.year, utc.month + 1, 1)
    return BillingPeriod(start=start, end=next_start - timedelta(days=1))
