"""
Services package for Reports module

Exports all report service classes for easy importing.
"""

from .comparative import ComparativeReportService
from .sources import ComparativeDataSource, SqlAlchemyComparativeSource

__all__ = [
    "ComparativeReportService",
    "ComparativeDataSource",
    "SqlAlchemyComparativeSource"
]
