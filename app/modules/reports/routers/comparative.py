"""
Comparative Reports Router

FastAPI router for the comparative dashboard: current period vs an
arbitrary comparison period, with optional CSV export.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, status

from app.common.errors import ApiError
from app.database.database import AsyncSessionLocal
from app.dependencies.companyDependencies import TenantId

from ..services.comparative import ComparativeReportService
from ..services.sources import ComparativeDataSource, SqlAlchemyComparativeSource
from ..schemas import ComparativeReportResponse, ErrorResponse
from ..utils import CSV_HEADERS, CSV_PREPARERS, create_csv_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports/comparative", tags=["Reports"])


def get_comparative_source(tenant_id: TenantId) -> ComparativeDataSource:
    """Record source scoped to the caller's company"""
    return SqlAlchemyComparativeSource(AsyncSessionLocal, tenant_id)


@router.get(
    "",
    response_model=None,
    responses={
        200: {"model": ComparativeReportResponse},
        400: {"model": ErrorResponse},
        405: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    }
)
async def get_comparative_report(
    current_start_date: Optional[str] = Query(None, alias="currentStartDate", description="Start of the current period (YYYY-MM-DD)"),
    current_end_date: Optional[str] = Query(None, alias="currentEndDate", description="End of the current period, inclusive (YYYY-MM-DD)"),
    previous_start_date: Optional[str] = Query(None, alias="previousStartDate", description="Start of the comparison period (YYYY-MM-DD)"),
    previous_end_date: Optional[str] = Query(None, alias="previousEndDate", description="End of the comparison period, inclusive (YYYY-MM-DD)"),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv"),
    section: str = Query("ranking", pattern="^(ranking|breakdowns|trends)$", description="Section exported as CSV"),
    source: ComparativeDataSource = Depends(get_comparative_source)
):
    """
    Generate the comparative report for two date ranges.

    Returns highlights per business category, weekly trends aligned on ISO
    weeks, breakdowns by site and service type, yes/no mixes and the
    product ranking. Can export one section as CSV.
    """
    service = ComparativeReportService(source=source)

    # Raises ApiError naming the first invalid parameter
    current_range, previous_range = service.resolve_ranges(
        current_start_date, current_end_date, previous_start_date, previous_end_date
    )

    try:
        report_data = await service.get_comparative_report(current_range, previous_range)
    except ApiError:
        raise
    except Exception as e:
        logger.exception(f"Error generating comparative report: {e}")
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "REPORT_ERROR",
            "Error generando la comparativa"
        ) from e

    # Export as CSV if requested
    if export == "csv":
        csv_data = CSV_PREPARERS[section](report_data)
        filename = f"comparativa_{section}_{current_range.start}_{current_range.end}.csv"
        return create_csv_response(
            rows=csv_data,
            filename=filename,
            columns=CSV_HEADERS[section]
        )

    return ComparativeReportResponse(**report_data)
