"""Map reservation errors to HTTP responses.

Body shape: {"detail": str, "code": str, "retryable": bool}. The code lets
clients tell "try other dates" (dates_unavailable) from "try again later"
(storage_timeout) from "not allowed" (invalid_transition, forbidden).
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from guesthouse.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ReservationError,
    ReservationNotPendingError,
    StorageTimeoutError,
    ValidationError,
)
from guesthouse.observability.correlation import get_correlation_id
from guesthouse.observability.logging import get_logger
from guesthouse.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Checked in order; first isinstance match wins.
_STATUS_CODES: tuple[tuple[type[ReservationError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (ConflictError, 409),
    (InvalidTransitionError, 409),
    (ReservationNotPendingError, 409),
    (StorageTimeoutError, 503),
)


def status_code_for(exc: ReservationError) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.info(
        "reservation request rejected",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                path=request.url.path,
                status_code=status_code,
                code=exc.code,
            )
        },
    )
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code, "retryable": exc.retryable},
        headers=headers,
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationError, reservation_error_handler)
