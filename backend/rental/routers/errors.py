import logging
from typing import NoReturn

from fastapi import HTTPException, status

from ..domain.errors import ErrorKind, ReservationError, ValidationError

logger = logging.getLogger(__name__)


def status_for(kind: ErrorKind) -> int:
    match kind:
        case ErrorKind.VALIDATION:
            return status.HTTP_400_BAD_REQUEST
        case ErrorKind.NOT_FOUND:
            return status.HTTP_404_NOT_FOUND
        case ErrorKind.AUTHORIZATION:
            return status.HTTP_403_FORBIDDEN
        case ErrorKind.CONFLICT | ErrorKind.INVALID_STATE | ErrorKind.CANNOT_CANCEL:
            return status.HTTP_409_CONFLICT
        case ErrorKind.STORAGE:
            return status.HTTP_500_INTERNAL_SERVER_ERROR


def raise_http(exc: ReservationError) -> NoReturn:
    detail: dict[str, object] = {"code": exc.kind.value, "message": exc.message}
    if exc.kind == ErrorKind.STORAGE:
        logger.error("storage failure: %s", exc.message, exc_info=exc)
        detail["message"] = "storage failure"
    elif isinstance(exc, ValidationError):
        detail["fields"] = exc.fields
    raise HTTPException(status_code=status_for(exc.kind), detail=detail) from exc
