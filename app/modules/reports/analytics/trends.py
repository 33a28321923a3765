"""
Week-aligned trend series for two independent date ranges.

Both series share one week axis spanning the two ranges, but each one is
only live inside its own range: outside it the value is forced to zero,
whatever the counts map holds for that week.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List

from .bucketing import build_sparkline
from .calendar import DateRange, IsoWeekKey, enumerate_iso_weeks, iso_week_to_date
from .ranking import compute_delta_percentage


@dataclass(frozen=True)
class TrendPoint:
    period_label: str
    iso_year: int
    iso_week: int
    current_value: int
    previous_value: int


@dataclass(frozen=True)
class TrendSeries:
    metric: str
    label: str
    points: List[TrendPoint] = field(default_factory=list)


@dataclass(frozen=True)
class Highlight:
    key: str
    label: str
    value: int
    last_year_value: int
    delta_percentage: float
    sparkline: List[int]
    unit: str = "number"


def unified_weeks(current: DateRange, previous: DateRange) -> List[IsoWeekKey]:
    """Week axis from the earlier start to the later end of both ranges"""
    return enumerate_iso_weeks(
        min(current.start, previous.start),
        max(current.end, previous.end)
    )


def build_trend(
    label: str,
    metric: str,
    current_counts: Dict[IsoWeekKey, int],
    previous_counts: Dict[IsoWeekKey, int],
    weeks: List[IsoWeekKey],
    current_range: DateRange,
    previous_range: DateRange
) -> TrendSeries:
    points = []
    for week in weeks:
        week_start = iso_week_to_date(week.iso_year, week.iso_week)
        in_current = current_range.contains_week_start(week_start)
        in_previous = previous_range.contains_week_start(week_start)

        points.append(TrendPoint(
            period_label=week.label,
            iso_year=week.iso_year,
            iso_week=week.iso_week,
            current_value=current_counts.get(week, 0) if in_current else 0,
            previous_value=previous_counts.get(week, 0) if in_previous else 0
        ))

    return TrendSeries(metric=metric, label=label, points=points)


def build_highlight(
    key: str,
    label: str,
    current_dates: List[date],
    previous_total: int,
    end: date,
    sparkline_weeks: int
) -> Highlight:
    value = len(current_dates)
    return Highlight(
        key=key,
        label=label,
        value=value,
        last_year_value=previous_total,
        delta_percentage=compute_delta_percentage(value, previous_total),
        sparkline=build_sparkline(current_dates, end, sparkline_weeks)
    )

