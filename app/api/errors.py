"""Exception handlers mapping domain errors to HTTP responses."""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConcurrentUpdateError,
    DomainError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()

# First match wins
STATUS_CODES: list[tuple[type[DomainError], int]] = [
    (ValidationError, 422),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (ConcurrentUpdateError, status.HTTP_409_CONFLICT),
]


def status_for(exc: DomainError) -> int | None:
    for error_type, status_code in STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return None


def _error_body(request: Request, error_code: str, message: str, details) -> dict:
    return {
        "error_code": error_code,
        "message": message,
        "details": details,
        "request_id": getattr(request.state, "request_id", None),
    }


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Handle domain errors with consistent format."""
    status_code = status_for(exc)
    if status_code is None:
        logger.error(
            "Unmapped domain error",
            path=request.url.path,
            error_code=exc.error_code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, "INTERNAL_ERROR", "An internal error occurred", {}),
        )

    logger.info(
        "Request rejected",
        path=request.url.path,
        error_code=exc.error_code,
        status_code=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content=_error_body(request, exc.error_code, exc.message, exc.details),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request body/query validation failures."""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=_error_body(request, "VALIDATION_ERROR", "Request validation failed", details),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
