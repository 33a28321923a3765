"""
Record sources for the comparative report

The comparative engine only sees typed events; a source is anything able
to return them for a half-open UTC day window.
"""

from datetime import date
from typing import List, Protocol
import logging

from .base import BaseReportService
from ..analytics.events import SessionEvent, VariantEvent
from app.modules.products.models import ProductVariant
from app.modules.sessions.models import TrainingSession

logger = logging.getLogger(__name__)


class ComparativeDataSource(Protocol):
    async def fetch_sessions(self, start: date, end_exclusive: date) -> List[SessionEvent]:
        ...

    async def fetch_variants(self, start: date, end_exclusive: date) -> List[VariantEvent]:
        ...


class SqlAlchemyComparativeSource(BaseReportService):
    """Reads sessions and open-enrollment variants from the relational store"""

    async def fetch_sessions(self, start: date, end_exclusive: date) -> List[SessionEvent]:
        query = self._apply_date_filter(
            self._get_base_session_query(), TrainingSession.start_at, start, end_exclusive
        )
        rows = await self._fetch_mappings(query)
        events = [event for event in map(SessionEvent.from_record, rows) if event is not None]
        logger.debug(f"Fetched {len(events)} sessions in [{start}, {end_exclusive}) for tenant {self.tenant_id}")
        return events

    async def fetch_variants(self, start: date, end_exclusive: date) -> List[VariantEvent]:
        query = self._apply_date_filter(
            self._get_base_variant_query(), ProductVariant.date, start, end_exclusive
        )
        rows = await self._fetch_mappings(query)
        events = [event for event in map(VariantEvent.from_record, rows) if event is not None]
        logger.debug(f"Fetched {len(events)} variants in [{start}, {end_exclusive}) for tenant {self.tenant_id}")
        return events
