"""
Error envelope shared by every endpoint

All failures leave the API as ``{"ok": false, "error_code": ..., "message": ...}``
with the matching HTTP status.
"""
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTPException carrying a machine readable error code"""

    def __init__(self, status_code: int, error_code: str, message: str):
        super().__init__(status_code=status_code, detail=message)
        self.error_code = error_code
        self.message = message


def error_payload(error_code: str, message: str) -> dict:
    return {"ok": False, "error_code": error_code, "message": message}


def error_response(status_code: int, error_code: str, message: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_payload(error_code, message),
        headers=headers
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    logger.debug(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}")
    return error_response(exc.status_code, exc.error_code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return error_response(
            exc.status_code, "METHOD_NOT_ALLOWED", "Método no permitido", headers=exc.headers
        )
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(exc.status_code, "NOT_FOUND", "Recurso no encontrado")
    return error_response(exc.status_code, "HTTP_ERROR", str(exc.detail), headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "query")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Parámetros inválidos"
    return error_response(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
