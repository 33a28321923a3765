"""
Base service class for Reports module

Provides common functionality for report data access: tenant filtering,
half-open UTC date windows and one-session-per-query execution so that
several queries of the same report can run concurrently.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Callable, List, Mapping
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.deals.models import Deal, DealProduct
from app.modules.products.models import Product, ProductVariant
from app.modules.sessions.models import TrainingSession


def utc_midnight(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


class BaseReportService:
    """Base service class for all report services"""

    def __init__(self, session_factory: Callable[[], AsyncSession], tenant_id: UUID):
        self.session_factory = session_factory
        self.tenant_id = tenant_id

    def _get_base_session_query(self):
        """Sessions with their deal and deal product, tenant filtered"""
        return select(
            TrainingSession.start_at.label("starts_at"),
            Deal.pipeline_label.label("pipeline_label"),
            Deal.site_label.label("site_label"),
            Deal.service_type.label("service_type"),
            Deal.fundae.label("fundae"),
            Deal.caes.label("caes"),
            Deal.hotel.label("hotel"),
            DealProduct.name.label("product_name"),
            DealProduct.code.label("product_code")
        ).select_from(
            TrainingSession
        ).outerjoin(
            Deal, TrainingSession.deal_id == Deal.id
        ).outerjoin(
            DealProduct, TrainingSession.deal_product_id == DealProduct.id
        ).where(
            TrainingSession.tenant_id == self.tenant_id,
            TrainingSession.deleted_at.is_(None)
        )

    def _get_base_variant_query(self):
        """Open-enrollment variants with their product, tenant filtered"""
        return select(
            ProductVariant.date.label("date"),
            ProductVariant.site_label.label("site_label"),
            Product.name.label("product_name"),
            Product.code.label("product_code")
        ).select_from(
            ProductVariant
        ).outerjoin(
            Product, ProductVariant.product_id == Product.id
        ).where(
            ProductVariant.tenant_id == self.tenant_id,
            ProductVariant.deleted_at.is_(None)
        )

    def _apply_date_filter(self, query, date_field, start_date: date, end_exclusive: date):
        """Half-open window ``[start, end_exclusive)`` on a UTC timestamp column"""
        return query.where(
            and_(
                date_field >= utc_midnight(start_date),
                date_field < utc_midnight(end_exclusive)
            )
        )

    async def _fetch_mappings(self, query) -> List[Mapping[str, Any]]:
        """Run a query on its own session and return its rows as mappings"""
        async with self.session_factory() as db:
            result = await db.execute(query)
            return list(result.mappings().all())
