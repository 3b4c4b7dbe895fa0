"""
Exception handlers para FastAPI.
"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    SegmentationServiceError,
    ValidationError,
    QueryError,
    PersistenceError,
    ProviderError,
    NotFoundError,
    ConfigurationError,
)

logger = logging.getLogger(__name__)


def status_code_for(exc: SegmentationServiceError) -> int:
    """Mapeia tipo de exception para status code HTTP."""
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, ProviderError):
        return 502
    if isinstance(exc, (QueryError, PersistenceError)):
        return 503
    if isinstance(exc, ConfigurationError):
        return 500
    return 500


async def service_exception_handler(request: Request, exc: SegmentationServiceError) -> JSONResponse:
    """Handler para todas as exceptions customizadas."""
    status_code = status_code_for(exc)
    error_type = exc.__class__.__name__

    logger.error(
        f"{error_type}: {exc.message}",
        extra={"extra_fields": {"error_type": error_type, "details": exc.details, "path": request.url.path}},
    )

    return JSONResponse(
        status_code=status_code,
        content={"error": error_type, "message": exc.message, "details": exc.details},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler para exceptions nao tratadas."""
    logger.exception(f"Erro nao tratado: {exc}", extra={"extra_fields": {"path": request.url.path}})

    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "message": "Erro interno do servidor",
            "details": {},
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Registra todos os exception handlers no app FastAPI.

    Usage:
        from app.api.error_handlers import register_exception_handlers

        app = FastAPI()
        register_exception_handlers(app)
    """
    app.add_exception_handler(SegmentationServiceError, service_exception_handler)

    # Handler generico para exceptions nao tratadas
    app.add_exception_handler(Exception, generic_exception_handler)
