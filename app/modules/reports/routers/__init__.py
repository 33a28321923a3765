"""
Routers package for Reports module

Exports all report router instances for easy importing.
"""

from .comparative import router as comparative_router

__all__ = [
    "comparative_router"
]
