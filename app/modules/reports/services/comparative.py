"""
Comparative Reports Service

Builds the "comparativa" dashboard. Two arbitrary date ranges (current and
comparison) go through the same pipeline:

    validate -> fetch (4 concurrent queries) -> classify -> aggregate

and come out as one payload with highlights, weekly trends, breakdowns,
yes/no mixes and a product ranking. Nothing is cached or persisted; every
call recomputes from the record source.
"""

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import date
from operator import attrgetter
from typing import Any, Dict, List, Optional, Tuple
import logging

from app.core.config import settings

from .sources import ComparativeDataSource
from ..analytics.bucketing import (
    NO_SERVICE_TYPE_LABEL,
    NO_SITE_LABEL,
    count_by_dimension,
    count_by_iso_week,
)
from ..analytics.calendar import DateRange
from ..analytics.classifier import SessionCategory, classify
from ..analytics.events import SessionEvent, VariantEvent
from ..analytics.ranking import binary_mix, merge_breakdown, rank_products
from ..analytics.trends import build_highlight, build_trend, unified_weeks
from ..utils import build_date_range, parse_date_param

logger = logging.getLogger(__name__)

GEP = SessionCategory.GEP_SERVICES
EMPRESA = SessionCategory.FORMACION_EMPRESA
ABIERTA = SessionCategory.FORMACION_ABIERTA

# (category, key, label) in output order
HIGHLIGHTS = [
    (GEP, "gepServicesSessions", "GEP Services"),
    (EMPRESA, "formacionEmpresaSessions", "Formacion Empresa"),
    (ABIERTA, "formacionAbiertaVariantesSessions", "Formación Abierta"),
]

TRENDS = [
    (EMPRESA, "formacionEmpresaSessions", "Formación Empresa vs comparativa"),
    (GEP, "gepServicesSessions", "GEP Services vs comparativa"),
]

# (key, label, category, flag)
BINARY_MIXES = [
    ("formacionEmpresaFundae", "Formación Empresa · FUNDAE", EMPRESA, attrgetter("fundae")),
    ("formacionEmpresaCaes", "Formación Empresa · CAES", EMPRESA, attrgetter("caes")),
    ("formacionEmpresaHotel", "Formación Empresa · Hotel", EMPRESA, attrgetter("hotel")),
    ("gepServicesCaes", "GEP Services · CAES", GEP, attrgetter("caes")),
]

RANKING_CATEGORIES = [EMPRESA, GEP, ABIERTA]


@dataclass
class ClassifiedPeriod:
    """Events of one range, sessions grouped by category"""
    sessions: Dict[SessionCategory, List[SessionEvent]] = field(default_factory=dict)
    variants: List[VariantEvent] = field(default_factory=list)
    unclassified: int = 0

    @classmethod
    def from_events(cls, sessions: List[SessionEvent], variants: List[VariantEvent]) -> "ClassifiedPeriod":
        period = cls(variants=list(variants))
        for session in sessions:
            category = classify(session)
            if category is None:
                period.unclassified += 1
                continue
            period.sessions.setdefault(category, []).append(session)
        return period

    def sessions_of(self, category: SessionCategory) -> List[SessionEvent]:
        return self.sessions.get(category, [])

    def events_of(self, category: SessionCategory) -> list:
        """Sessions of a category; open enrollment also counts every variant"""
        events = list(self.sessions_of(category))
        if category is ABIERTA:
            events.extend(self.variants)
        return events

    def dates_of(self, category: SessionCategory) -> List[date]:
        return [event.event_date for event in self.events_of(category)]


class ComparativeReportService:
    """Service for generating the comparative (current vs comparison) report"""

    def __init__(self, source: ComparativeDataSource, sparkline_weeks: Optional[int] = None):
        self.source = source
        self.sparkline_weeks = sparkline_weeks or settings.COMPARATIVE_SPARKLINE_WEEKS

    @staticmethod
    def resolve_ranges(
        current_start: Optional[str],
        current_end: Optional[str],
        previous_start: Optional[str],
        previous_end: Optional[str]
    ) -> Tuple[DateRange, DateRange]:
        """
        Validate the four raw query parameters.

        Each parameter is checked in order and the first failure raises an
        ``ApiError`` naming that parameter.
        """
        current_start_date = parse_date_param(current_start, "Fecha inicio")
        current_end_date = parse_date_param(current_end, "Fecha fin")
        previous_start_date = parse_date_param(previous_start, "Fecha inicio comparativa")
        previous_end_date = parse_date_param(previous_end, "Fecha fin comparativa")

        current_range = build_date_range(
            current_start_date, current_end_date, "Fecha inicio", "Fecha fin"
        )
        previous_range = build_date_range(
            previous_start_date, previous_end_date, "Fecha inicio comparativa", "Fecha fin comparativa"
        )
        return current_range, previous_range

    async def get_comparative_report(self, current: DateRange, previous: DateRange) -> Dict[str, Any]:
        """
        Generate the comparative report for two date ranges.

        Returns a dict ready for ``ComparativeReportResponse``. Any failure
        of the record source aborts the whole report.
        """
        logger.info(
            f"Comparative report: current {current.start}..{current.end}, "
            f"previous {previous.start}..{previous.end}"
        )

        current_period, previous_period = await self._fetch_periods(current, previous)

        for category in SessionCategory:
            logger.debug(
                f"{category.value}: current={len(current_period.events_of(category))} "
                f"previous={len(previous_period.events_of(category))}"
            )
        if current_period.unclassified or previous_period.unclassified:
            logger.debug(
                f"Unclassified sessions: current={current_period.unclassified} "
                f"previous={previous_period.unclassified}"
            )

        return {
            "ok": True,
            "highlights": self._build_highlights(current_period, previous_period, current),
            "trends": self._build_trends(current_period, previous_period, current, previous),
            "breakdowns": self._build_breakdowns(current_period, previous_period),
            "revenue_mix": [],
            "binary_mixes": self._build_binary_mixes(current_period),
            "heatmap": [],
            "funnel": [],
            "ranking": self._build_ranking(current_period, previous_period),
        }

    async def _fetch_periods(
        self,
        current: DateRange,
        previous: DateRange
    ) -> Tuple[ClassifiedPeriod, ClassifiedPeriod]:
        try:
            current_sessions, previous_sessions, current_variants, previous_variants = await asyncio.gather(
                self.source.fetch_sessions(current.start, current.end_exclusive),
                self.source.fetch_sessions(previous.start, previous.end_exclusive),
                self.source.fetch_variants(current.start, current.end_exclusive),
                self.source.fetch_variants(previous.start, previous.end_exclusive)
            )
        except Exception as e:
            logger.error(f"Comparative report aborted, record source failed: {e}")
            raise

        return (
            ClassifiedPeriod.from_events(current_sessions, current_variants),
            ClassifiedPeriod.from_events(previous_sessions, previous_variants),
        )

    def _build_highlights(
        self,
        current_period: ClassifiedPeriod,
        previous_period: ClassifiedPeriod,
        current: DateRange
    ) -> List[Dict[str, Any]]:
        return [
            asdict(build_highlight(
                key=key,
                label=label,
                current_dates=current_period.dates_of(category),
                previous_total=len(previous_period.events_of(category)),
                end=current.end,
                sparkline_weeks=self.sparkline_weeks
            ))
            for category, key, label in HIGHLIGHTS
        ]

    def _build_trends(
        self,
        current_period: ClassifiedPeriod,
        previous_period: ClassifiedPeriod,
        current: DateRange,
        previous: DateRange
    ) -> List[Dict[str, Any]]:
        weeks = unified_weeks(current, previous)
        return [
            asdict(build_trend(
                label=label,
                metric=metric,
                current_counts=count_by_iso_week(current_period.dates_of(category)),
                previous_counts=count_by_iso_week(previous_period.dates_of(category)),
                weeks=weeks,
                current_range=current,
                previous_range=previous
            ))
            for category, metric, label in TRENDS
        ]

    def _build_breakdowns(
        self,
        current_period: ClassifiedPeriod,
        previous_period: ClassifiedPeriod
    ) -> List[Dict[str, Any]]:
        site = attrgetter("site_label")
        service_type = attrgetter("service_type")

        rows = []
        rows += merge_breakdown(
            count_by_dimension(current_period.sessions_of(EMPRESA), site, NO_SITE_LABEL),
            count_by_dimension(previous_period.sessions_of(EMPRESA), site, NO_SITE_LABEL),
            "formacionEmpresaSite"
        )
        rows += merge_breakdown(
            count_by_dimension(current_period.variants, site, NO_SITE_LABEL),
            count_by_dimension(previous_period.variants, site, NO_SITE_LABEL),
            "formacionAbiertaSite"
        )
        rows += merge_breakdown(
            count_by_dimension(current_period.sessions_of(GEP), service_type, NO_SERVICE_TYPE_LABEL),
            count_by_dimension(previous_period.sessions_of(GEP), service_type, NO_SERVICE_TYPE_LABEL),
            "gepServicesType"
        )
        return [asdict(row) for row in rows]

    def _build_binary_mixes(self, current_period: ClassifiedPeriod) -> List[Dict[str, Any]]:
        return [
            asdict(binary_mix(key, label, current_period.sessions_of(category), flag))
            for key, label, category, flag in BINARY_MIXES
        ]

    def _build_ranking(
        self,
        current_period: ClassifiedPeriod,
        previous_period: ClassifiedPeriod
    ) -> List[Dict[str, Any]]:
        rows = []
        for category in RANKING_CATEGORIES:
            rows += rank_products(
                current_period.events_of(category),
                previous_period.events_of(category),
                category.value
            )
        return [asdict(row) for row in rows]
