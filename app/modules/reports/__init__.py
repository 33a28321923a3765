"""
Reports Module - GEP ERP

Reportes de dirección sobre las sesiones de formación y servicios.

Este módulo NO crea nuevas tablas, sino que lee sesiones, negocios y
variantes de formación abierta de otros módulos y recalcula cada reporte
en cada petición (no se persiste ni se cachea nada).

Funcionalidades principales:
- Comparativa entre dos rangos de fechas arbitrarios (periodo actual vs comparativa)
- KPIs por línea de negocio con sparkline semanal
- Tendencias semanales alineadas por semana ISO
- Desgloses por sede y tipo de servicio, mezclas sí/no (FUNDAE, CAES, Hotel)
- Ranking de productos con variación porcentual
- Exportación CSV de ranking, desgloses y tendencias

Architecture Pattern: Service Layer
- routers/ -> Define FastAPI endpoints con validaciones
- services/ -> Orquestación y consultas SQL
- analytics/ -> Cálculo puro (calendario ISO, clasificación, agregados)
- schemas/ -> Modelos Pydantic para responses
- utils/ -> Parseo de fechas y exportación CSV
"""

from .routers import comparative_router

__all__ = [
    "comparative_router"
]

__version__ = "1.0.0"
