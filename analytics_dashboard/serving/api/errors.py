"""
API Error Mapping

Translates service errors into the JSON error envelope:

    {"error": {"code": ..., "message": ..., "details": ...}}
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from analytics_dashboard.domain.errors import (
    ConcurrencyConflictError,
    DomainError,
    NotFoundError,
    RepositoryError,
)

logger = structlog.get_logger(__name__)


def error_body(code: str, message: str, details: str = "") -> dict:
    return {"error": {"code": code, "message": message, "details": details}}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.info("Domain validation failed", code=exc.code, path=request.url.path)
    return JSONResponse(status_code=400, content={"error": exc.to_dict()})


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content=error_body("NOT_FOUND", str(exc), exc.identifier or ""),
    )


async def conflict_handler(request: Request, exc: ConcurrencyConflictError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content=error_body("CONCURRENCY_CONFLICT", str(exc), exc.identifier),
    )


async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    logger.error("Repository failure", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content=error_body("REPOSITORY_ERROR", "Internal storage error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ConcurrencyConflictError, conflict_handler)
    app.add_exception_handler(RepositoryError, repository_error_handler)
