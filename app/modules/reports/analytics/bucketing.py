"""
Counting helpers: per ISO week and per categorical dimension.

Results are plain dicts; callers sort explicitly, so iteration order
never carries meaning.
"""

from collections import Counter
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from .calendar import IsoWeekKey, iso_week_of, trailing_iso_weeks

T = TypeVar("T")

NO_SITE_LABEL = "Sin sede"
NO_SERVICE_TYPE_LABEL = "Sin tipo de servicio"


def count_by_iso_week(dates: Iterable[date]) -> Dict[IsoWeekKey, int]:
    return dict(Counter(iso_week_of(value) for value in dates))


def count_by_dimension(
    events: Iterable[T],
    extractor: Callable[[T], Optional[str]],
    empty_label: str
) -> Dict[str, int]:
    """
    Group events by the label returned by ``extractor``.

    Missing or blank labels go to ``empty_label`` so the totals always
    match the number of events.
    """
    counts: Counter = Counter()
    for event in events:
        label = (extractor(event) or "").strip() or empty_label
        counts[label] += 1
    return dict(counts)


def build_sparkline(dates: Iterable[date], end: date, weeks: int) -> List[int]:
    """Weekly counts for the ``weeks`` weeks ending at the week of ``end``"""
    counts = count_by_iso_week(dates)
    return [counts.get(week, 0) for week in trailing_iso_weeks(end, weeks)]
