"""
Comparative analytics engine

Pure, I/O free building blocks used by the comparative report:
ISO calendar arithmetic, session classification, counting, week-aligned
trends and period-over-period rankings.
"""

from .calendar import (
    DateRange,
    IsoWeekKey,
    enumerate_iso_weeks,
    iso_week_of,
    iso_week_to_date,
    start_of_iso_week,
)
from .classifier import SessionCategory, classify
from .events import SessionEvent, VariantEvent
from .ranking import compute_delta_percentage, merge_breakdown, rank_products
from .trends import build_trend, unified_weeks

__all__ = [
    "DateRange",
    "IsoWeekKey",
    "enumerate_iso_weeks",
    "iso_week_of",
    "iso_week_to_date",
    "start_of_iso_week",
    "SessionCategory",
    "classify",
    "SessionEvent",
    "VariantEvent",
    "compute_delta_percentage",
    "merge_breakdown",
    "rank_products",
    "build_trend",
    "unified_weeks",
]
