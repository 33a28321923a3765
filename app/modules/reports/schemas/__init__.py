"""
Pydantic schemas for Reports module

Defines the response models of the comparative report. Fields are
declared in snake_case and serialized in camelCase, which is the shape the
dashboard consumes.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HighlightItem(CamelModel):
    """KPI card for one business category"""
    key: str
    label: str
    unit: str = "number"
    value: int = Field(ge=0, description="Total in the current range")
    last_year_value: int = Field(ge=0, description="Total in the comparison range")
    delta_percentage: float
    sparkline: List[int] = Field(description="Weekly counts ending at the current range end")


class TrendPointItem(CamelModel):
    period_label: str
    iso_year: int
    iso_week: int = Field(ge=1, le=53)
    current_value: int = Field(ge=0)
    previous_value: int = Field(ge=0)


class TrendSeriesItem(CamelModel):
    metric: str
    label: str
    points: List[TrendPointItem]


class BreakdownItem(CamelModel):
    dimension: str
    label: str
    current: int = Field(ge=0)
    previous: int = Field(ge=0)
    delta_percentage: float


class BinaryMixItem(CamelModel):
    key: str
    label: str
    yes: int = Field(ge=0)
    no: int = Field(ge=0)


class RankingItem(CamelModel):
    category: str
    label: str
    current_value: int = Field(ge=0)
    previous_value: int = Field(ge=0)
    delta_percentage: float
    rank: int = Field(ge=1)


class ComparativeReportResponse(CamelModel):
    """Response for the comparative report"""
    ok: bool = True
    highlights: List[HighlightItem]
    trends: List[TrendSeriesItem]
    breakdowns: List[BreakdownItem]
    revenue_mix: List[dict] = Field(default_factory=list, description="Reserved, always empty")
    binary_mixes: List[BinaryMixItem]
    heatmap: List[dict] = Field(default_factory=list, description="Reserved, always empty")
    funnel: List[dict] = Field(default_factory=list, description="Reserved, always empty")
    ranking: List[RankingItem]


class ErrorResponse(BaseModel):
    """Error envelope returned by every endpoint"""
    ok: bool = False
    error_code: str
    message: str
