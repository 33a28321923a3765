from typing import Annotated
from fastapi import Depends, Request, status
from uuid import UUID

from app.common.errors import ApiError


def get_tenant_id(request: Request) -> UUID:
    """Extract tenant_id from request state set by TenantMiddleware"""
    if not hasattr(request.state, 'tenant_id'):
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "MISSING_TENANT",
            "Contexto de empresa no encontrado. Envíe la cabecera X-Company-ID."
        )
    return request.state.tenant_id


TenantId = Annotated[UUID, Depends(get_tenant_id)]
