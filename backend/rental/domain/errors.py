from __future__ import annotations

from enum import StrEnum
from typing import ClassVar, Mapping


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    AUTHORIZATION = "authorization"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    CANNOT_CANCEL = "cannot_cancel"
    STORAGE = "storage"


class ReservationError(Exception):
    """Base for every failure the engine reports; callers dispatch on ``kind``."""

    kind: ClassVar[ErrorKind]

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ReservationError):
    kind = ErrorKind.VALIDATION

    def __init__(self, fields: Mapping[str, str]) -> None:
        self.fields = dict(fields)
        super().__init__("; ".join(f"{name}: {problem}" for name, problem in self.fields.items()))


class NotFoundError(ReservationError):
    kind = ErrorKind.NOT_FOUND


class AuthorizationError(ReservationError):
    kind = ErrorKind.AUTHORIZATION


class ConflictError(ReservationError):
    kind = ErrorKind.CONFLICT


class InvalidStateError(ReservationError):
    kind = ErrorKind.INVALID_STATE


class CannotCancelError(ReservationError):
    kind = ErrorKind.CANNOT_CANCEL


class StorageError(ReservationError):
    kind = ErrorKind.STORAGE
