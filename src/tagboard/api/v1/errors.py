"""Translation of store errors into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tagboard.core.errors import (
    ConflictError,
    InvariantViolation,
    NotFoundError,
    PermissionDeniedError,
    TagboardError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[TagboardError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (InvariantViolation, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: TagboardError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def tagboard_error_handler(request: Request, exc: TagboardError) -> JSONResponse:
    """Render a store error as ``{"detail": ...}`` with a matching status."""
    code = status_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        detail = "internal server error"
    else:
        detail = str(exc)
    headers = {"Retry-After": "1"} if isinstance(exc, ConflictError) and exc.retryable else None
    return JSONResponse(status_code=code, content={"detail": detail}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TagboardError, tagboard_error_handler)
