import structlog
from fastapi import HTTPException

from vfd_booking.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    StoreError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# Checked in order; CapacityError resolves through ConflictError
_STATUS_BY_ERROR: tuple[tuple[type[ServiceError], int], ...] = (
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (ConflictError, 409),
    (ValidationError, 422),
    (StoreError, 503),
)


def status_for(err: ServiceError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(err, error_type):
            return status
    return 500


def http_error_from_service(err: ServiceError) -> HTTPException:
    status = status_for(err)
    if status >= 500:
        logger.error("service_error", code=err.code, error=err.message, status=status)

    return HTTPException(
        status_code=status,
        detail={"code": err.code, "message": err.message},
    )
