"""
Exception handlers that render every failure as the same JSON envelope:

    {"error": {"code": ..., "message": ..., "request_id": ...}}

Lifecycle errors additionally carry ``expected_status``/``current_status``
and validation errors the offending ``field``; these describe the appraisal
itself, so they are returned regardless of ``expose_error_details``.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from structlog import get_logger

from app.core.config import settings
from app.core.errors import DomainError, PreconditionFailedError, ValidationError

logger = get_logger()

ERROR_STATUS_MAP = {
    "VALIDATION_ERROR": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "CONFLICT": status.HTTP_409_CONFLICT,
    # wrong lifecycle status for the operation
    "PRECONDITION_FAILED": status.HTTP_409_CONFLICT,
    "DECLARATION_REQUIRED": status.HTTP_409_CONFLICT,
    # committee membership rules
    "INTEGRITY_ERROR": status.HTTP_400_BAD_REQUEST,
    "DATABASE_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
    "CONFIGURATION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "DOMAIN_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _envelope(request: Request, code: str, message: str, **extra: Any) -> dict[str, Any]:
    return {"error": {"code": code, "message": message, **extra, "request_id": _request_id(request)}}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """
    Render a DomainError with the status from ERROR_STATUS_MAP.

    Client-side failures (4xx) log at WARNING; 5xx at ERROR.
    """
    http_status = ERROR_STATUS_MAP.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    log = logger.error if http_status >= 500 else logger.warning
    log(
        "domain_error_handled",
        error_code=exc.code,
        http_status=http_status,
        message=exc.message,
        context=exc.context,
        request_id=_request_id(request),
    )

    extra: dict[str, Any] = {}
    if isinstance(exc, PreconditionFailedError):
        if exc.expected_status is not None:
            extra["expected_status"] = exc.expected_status
        if exc.current_status is not None:
            extra["current_status"] = exc.current_status
    if isinstance(exc, ValidationError) and exc.field:
        extra["field"] = exc.field
    if settings.expose_error_details and exc.context:
        extra["details"] = exc.context

    return JSONResponse(
        status_code=http_status,
        content=_envelope(request, exc.code, exc.message, **extra),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    # 401 from the identity headers ends up here
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(request, f"HTTP_{exc.status_code}", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request body or path failed pydantic validation."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_envelope(
            request, "VALIDATION_ERROR", "Invalid request data", details=exc.errors()
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        path=request.url.path,
        request_id=_request_id(request),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(request, "INTERNAL_ERROR", "An unexpected error occurred"),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]
