import pytest
from fastapi import HTTPException
from rental.domain.errors import (
    AuthorizationError,
    CannotCancelError,
    ConflictError,
    ErrorKind,
    InvalidStateError,
    NotFoundError,
    ReservationError,
    StorageError,
    ValidationError,
)
from rental.routers.errors import raise_http, status_for


@pytest.mark.parametrize(
    "kind, expected",
    [
        (ErrorKind.VALIDATION, 400),
        (ErrorKind.NOT_FOUND, 404),
        (ErrorKind.AUTHORIZATION, 403),
        (ErrorKind.CONFLICT, 409),
        (ErrorKind.INVALID_STATE, 409),
        (ErrorKind.CANNOT_CANCEL, 409),
        (ErrorKind.STORAGE, 500),
    ],
)
def test_status_for_every_kind(kind: ErrorKind, expected: int) -> None:
    assert status_for(kind) == expected


@pytest.mark.parametrize(
    "exc",
    [
        NotFoundError("reservation not found"),
        AuthorizationError("nope"),
        ConflictError("equipment is not available for the selected dates"),
        InvalidStateError("reservation is not pending"),
        CannotCancelError("too late"),
    ],
)
def test_raise_http_carries_code_and_message(exc: ReservationError) -> None:
    with pytest.raises(HTTPException) as excinfo:
        raise_http(exc)
    assert excinfo.value.detail == {"code": exc.kind.value, "message": exc.message}
    assert excinfo.value.__cause__ is exc


def test_validation_detail_lists_fields() -> None:
    with pytest.raises(HTTPException) as excinfo:
        raise_http(ValidationError({"end_date": "must be after start_date"}))
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail["fields"] == {"end_date": "must be after start_date"}


def test_storage_message_is_masked(caplog) -> None:
    with caplog.at_level("ERROR", logger="rental.routers.errors"):
        with pytest.raises(HTTPException) as excinfo:
            raise_http(StorageError("connection reset by peer"))
    assert excinfo.value.status_code == 500
    assert excinfo.value.detail["message"] == "storage failure"
    assert "connection reset by peer" in caplog.text
