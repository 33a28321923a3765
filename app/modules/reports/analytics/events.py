"""
Typed events consumed by the comparative engine.

Rows coming from the record source are loosely typed (nullable labels,
flags stored as booleans or strings, dates as timestamps or ISO strings).
``SessionEvent.from_record`` and ``VariantEvent.from_record`` are the only
place where those raw values are inspected; the rest of the engine works
on these frozen value objects.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Optional

from .calendar import to_utc_date

TRUE_VALUES = ("true", "1", "yes", "si", "sí", "on")


def clean_label(value: Any) -> Optional[str]:
    """Trimmed text, or None when missing or blank"""
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


def parse_flag(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower().strip('"').strip("'").strip() in TRUE_VALUES
    return bool(value)


def parse_event_date(value: Any) -> Optional[date]:
    """UTC calendar date of a timestamp, date or ISO string; None if unusable"""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return to_utc_date(value)
    if isinstance(value, str):
        try:
            return to_utc_date(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class SessionEvent:
    """A scheduled session of a company deal"""
    event_date: date
    pipeline_label: Optional[str] = None
    site_label: Optional[str] = None
    service_type: Optional[str] = None
    fundae: Optional[bool] = None
    caes: Optional[bool] = None
    hotel: Optional[bool] = None
    product_name: Optional[str] = None
    product_code: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Optional["SessionEvent"]:
        event_date = parse_event_date(record.get("starts_at"))
        if event_date is None:
            return None
        return cls(
            event_date=event_date,
            pipeline_label=clean_label(record.get("pipeline_label")),
            site_label=clean_label(record.get("site_label")),
            service_type=clean_label(record.get("service_type")),
            fundae=parse_flag(record.get("fundae")),
            caes=parse_flag(record.get("caes")),
            hotel=parse_flag(record.get("hotel")),
            product_name=clean_label(record.get("product_name")),
            product_code=clean_label(record.get("product_code")),
        )


@dataclass(frozen=True)
class VariantEvent:
    """An open-enrollment course date, not tied to a deal"""
    event_date: date
    site_label: Optional[str] = None
    product_name: Optional[str] = None
    product_code: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Optional["VariantEvent"]:
        event_date = parse_event_date(record.get("date"))
        if event_date is None:
            return None
        return cls(
            event_date=event_date,
            site_label=clean_label(record.get("site_label")),
            product_name=clean_label(record.get("product_name")),
            product_code=clean_label(record.get("product_code")),
        )
