"""
Utilities for Reports module

Provides query parameter parsing, CSV export functionality and common
utility functions for report generation and data formatting.
"""

import csv
import io
import re
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import Response, status

from app.common.errors import ApiError
from ..analytics.calendar import DateRange

DATE_PARAM_PATTERN = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")

# Year 1 and 9999 leave no room for the week padding around a range
MIN_PARAM_YEAR = 2
MAX_PARAM_YEAR = 9998


def parse_date_param(value: Optional[str], label: str) -> date:
    """
    Parse a required ``YYYY-MM-DD`` query parameter.

    Raises ApiError (400, INVALID_DATE) with a message naming ``label``
    when the value is missing, badly formatted or not a real date.
    """
    if not value:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "INVALID_DATE", f"{label} es obligatoria")

    match = DATE_PARAM_PATTERN.fullmatch(value)
    if not match:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST, "INVALID_DATE", f"{label} debe tener formato YYYY-MM-DD"
        )

    invalid = ApiError(
        status.HTTP_400_BAD_REQUEST, "INVALID_DATE", f"{label} no es una fecha válida"
    )
    year, month, day = (int(part) for part in match.groups())
    if not MIN_PARAM_YEAR <= year <= MAX_PARAM_YEAR:
        raise invalid
    try:
        return date(year, month, day)
    except ValueError:
        raise invalid


def build_date_range(start: date, end: date, start_label: str, end_label: str) -> DateRange:
    if end < start:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_DATE_RANGE",
            f"{end_label} debe ser igual o posterior a {start_label}"
        )
    return DateRange(start=start, end=end)


def create_csv_response(rows: List[Dict[str, Any]], filename: str, columns: Dict[str, str]) -> Response:
    """
    Render report rows as a downloadable CSV.

    ``columns`` maps row keys to the Spanish column titles and fixes the
    column order; keys not listed there are left out. An empty report
    still gets its title line.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(columns.values())
    writer.writerows(
        [format_csv_value(row.get(key)) for key in columns]
        for row in rows
    )

    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


def format_csv_value(value: Any) -> str:
    """Cell text: blank for None, Sí/No for flags, two decimals for percentages"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Sí" if value else "No"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def prepare_ranking_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Prepare product ranking data for CSV export"""
    return [
        {
            "category": row["category"],
            "rank": row["rank"],
            "label": row["label"],
            "current_value": row["current_value"],
            "previous_value": row["previous_value"],
            "delta_percentage": row["delta_percentage"]
        }
        for row in report_data["ranking"]
    ]


def prepare_breakdowns_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Prepare breakdown rows for CSV export"""
    return [
        {
            "dimension": row["dimension"],
            "label": row["label"],
            "current": row["current"],
            "previous": row["previous"],
            "delta_percentage": row["delta_percentage"]
        }
        for row in report_data["breakdowns"]
    ]


def prepare_trends_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flatten every trend series into one row per week"""
    csv_data = []
    for series in report_data["trends"]:
        for point in series["points"]:
            csv_data.append({
                "metric": series["metric"],
                "period_label": point["period_label"],
                "current_value": point["current_value"],
                "previous_value": point["previous_value"]
            })
    return csv_data


CSV_PREPARERS = {
    "ranking": prepare_ranking_csv,
    "breakdowns": prepare_breakdowns_csv,
    "trends": prepare_trends_csv,
}


# CSV Headers mapping for better column names
CSV_HEADERS = {
    "ranking": {
        "category": "Categoría",
        "rank": "Posición",
        "label": "Producto",
        "current_value": "Periodo Actual",
        "previous_value": "Comparativa",
        "delta_percentage": "Variación %"
    },
    "breakdowns": {
        "dimension": "Dimensión",
        "label": "Etiqueta",
        "current": "Periodo Actual",
        "previous": "Comparativa",
        "delta_percentage": "Variación %"
    },
    "trends": {
        "metric": "Métrica",
        "period_label": "Semana ISO",
        "current_value": "Periodo Actual",
        "previous_value": "Comparativa"
    }
}
