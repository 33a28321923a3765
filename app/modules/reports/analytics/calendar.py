"""
ISO-8601 calendar utilities for the comparative reports.

Weeks start on Monday and week 1 is the week that contains the first
Thursday of the year. All arithmetic is done on UTC calendar dates:
datetimes are converted with ``to_utc_date`` before anything else, so
no local-time function is involved.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Union

MONDAY = 1
THURSDAY = 4
DAYS_PER_WEEK = 7

DateLike = Union[date, datetime]


@dataclass(frozen=True, order=True)
class IsoWeekKey:
    """ISO week identifier, serialized as ``YYYY-Www``"""
    iso_year: int
    iso_week: int

    @property
    def label(self) -> str:
        return f"{self.iso_year}-W{self.iso_week:02d}"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range used for one side of a comparison"""
    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError("end must be greater than or equal to start")

    @property
    def end_exclusive(self) -> date:
        """Upper bound for half-open timestamp queries (``< end + 1 day``)"""
        return add_days(self.end, 1)

    def contains_week_start(self, week_start: date) -> bool:
        """
        Whether a week (given by its Monday) is live for this range.

        The lower bound is the Monday of the range's first week so a range
        starting mid-week still reports its first week.
        """
        return start_of_iso_week(self.start) <= week_start <= self.end


def to_utc_date(value: DateLike) -> date:
    """Collapse a date or datetime to its UTC calendar date (naive = UTC)"""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def add_days(value: DateLike, amount: int) -> date:
    return to_utc_date(value) + timedelta(days=amount)


def _nearest_thursday(day: date) -> date:
    # isoweekday(): Monday=1 ... Sunday=7, so Sunday moves back 3 days
    return day + timedelta(days=THURSDAY - day.isoweekday())


def iso_week_of(value: DateLike) -> IsoWeekKey:
    """
    Compute the ISO week of a date using the nearest-Thursday rule.

    The ISO year is the calendar year of the Thursday in the same week and
    the week number counts whole weeks from January 1st of that year.
    """
    thursday = _nearest_thursday(to_utc_date(value))
    year_start = date(thursday.year, 1, 1)
    return IsoWeekKey(thursday.year, (thursday - year_start).days // DAYS_PER_WEEK + 1)


def start_of_iso_week(value: DateLike) -> date:
    """Monday of the week containing ``value`` (Sunday goes 6 days back)"""
    day = to_utc_date(value)
    return day - timedelta(days=day.isoweekday() - MONDAY)


def weeks_in_iso_year(iso_year: int) -> int:
    # December 28th always falls in the last ISO week of its year
    return iso_week_of(date(iso_year, 12, 28)).iso_week


def iso_week_to_date(iso_year: int, iso_week: int) -> date:
    """
    Monday of the given ISO week.

    Starts from ``Jan 1 + (iso_week - 1) * 7`` and snaps to that week's
    Monday: Monday..Thursday move back ``weekday - 1`` days, Friday..Sunday
    move forward ``8 - weekday`` days (Sunday counted as 7).
    """
    if not 1 <= iso_week <= weeks_in_iso_year(iso_year):
        raise ValueError(f"ISO year {iso_year} has no week {iso_week}")

    simple = date(iso_year, 1, 1) + timedelta(weeks=iso_week - 1)
    day_of_week = simple.isoweekday()
    offset = day_of_week - 1 if day_of_week <= THURSDAY else day_of_week - 8
    return simple - timedelta(days=offset)


def enumerate_iso_weeks(start: DateLike, end: DateLike) -> List[IsoWeekKey]:
    """
    Every ISO week touched by ``[start, end]``, in chronological order.

    Steps 7 days at a time from the Monday of ``start`` until passing ``end``.
    """
    cursor = start_of_iso_week(start)
    last_day = to_utc_date(end)
    weeks = []
    while cursor <= last_day:
        weeks.append(iso_week_of(cursor))
        cursor += timedelta(days=DAYS_PER_WEEK)
    return weeks


def trailing_iso_weeks(end: DateLike, count: int) -> List[IsoWeekKey]:
    """The ``count`` weeks ending with the week of ``end``, oldest first"""
    end_week_start = start_of_iso_week(end)
    return [
        iso_week_of(end_week_start - timedelta(days=offset * DAYS_PER_WEEK))
        for offset in range(count - 1, -1, -1)
    ]
