"""Error kinds raised by the project services.

Every failure carries an explicit ``kind`` from the point where it happened,
so callers branch on the kind instead of on exception identity or message text.
"""
from __future__ import annotations

import re
from enum import StrEnum

from sqlalchemy.exc import IntegrityError


class ErrorKind(StrEnum):
    """Categories of project service failures."""

    VALIDATION = "validation"
    QUOTA_EXCEEDED = "quota_exceeded"
    DUPLICATE_KEY = "duplicate_key"
    NOT_FOUND_RELATED = "not_found_related"
    INTERNAL = "internal"


STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.QUOTA_EXCEEDED: 402,
    ErrorKind.NOT_FOUND_RELATED: 404,
    ErrorKind.DUPLICATE_KEY: 409,
    ErrorKind.INTERNAL: 500,
}

INTERNAL_ERROR_MESSAGE = "Server failed to process your request, please try again later"

_SQLITE_UNIQUE_PATTERN = re.compile(r"UNIQUE constraint failed: (?:\w+\.)?(\w+)")
_POSTGRES_UNIQUE_PATTERN = re.compile(r"Key \((\w+)\)=\((.*?)\) already exists")
_POSTGRES_FOREIGN_KEY_PATTERN = re.compile(r"Key \((\w+)\)=\((.*?)\) is not present in table")
_FOREIGN_KEY_MARKERS = ("FOREIGN KEY constraint failed", "violates foreign key constraint")


class ProjectError(Exception):
    """Base class for failures surfaced by the project services."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict:
        return {"success": False, "kind": self.kind.value, "message": self.message}


class ProjectValidationError(ProjectError):
    """Raised for structural, cross-field or field-level validation failures."""

    kind = ErrorKind.VALIDATION


class QuotaExceededError(ProjectError):
    """Raised when a user's subscription tier does not allow another root project."""

    kind = ErrorKind.QUOTA_EXCEEDED

    def __init__(self, message: str, *, ceiling: int | None = None):
        super().__init__(message)
        self.ceiling = ceiling


class DuplicateKeyError(ProjectError):
    """Raised when a uniqueness constraint rejects the write."""

    kind = ErrorKind.DUPLICATE_KEY

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class RelatedProjectNotFoundError(ProjectError):
    """Raised when a referenced project does not exist and existence is required."""

    kind = ErrorKind.NOT_FOUND_RELATED

    def __init__(self, message: str, *, field: str | None = None, project_id=None):
        super().__init__(message)
        self.field = field
        self.project_id = project_id


class UserNotFoundError(ProjectError):
    """Raised when the acting user no longer exists."""

    kind = ErrorKind.NOT_FOUND_RELATED

    def __init__(self, message: str, *, user_id=None):
        super().__init__(message)
        self.user_id = user_id


class ProjectInternalError(ProjectError):
    """Opaque failure; the message never includes the underlying error."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str = INTERNAL_ERROR_MESSAGE):
        super().__init__(message)


def duplicate_field_from_error(error: IntegrityError) -> tuple[str | None, str | None]:
    """Return ``(field, value)`` for a unique violation, as far as the driver reports it."""

    detail = str(getattr(error, "orig", None) or error)
    match = _POSTGRES_UNIQUE_PATTERN.search(detail)
    if match:
        return match.group(1), match.group(2)
    match = _SQLITE_UNIQUE_PATTERN.search(detail)
    if match:
        return match.group(1), None
    return None, None


def duplicate_key_message(
    error: IntegrityError, fallback: str, values: dict | None = None
) -> tuple[str, str | None]:
    """Build a conflict message naming the duplicated field.

    ``values`` supplies the attempted values when the driver omits them (SQLite).
    """

    field, value = duplicate_field_from_error(error)
    if field is None:
        return fallback, None
    if value is None and values:
        value = values.get(field)
    if value:
        return f"A project with {field} '{value}' already exists", field
    return f"A project with this {field} already exists", field


def is_foreign_key_violation(error: IntegrityError) -> bool:
    detail = str(getattr(error, "orig", None) or error)
    return any(marker in detail for marker in _FOREIGN_KEY_MARKERS)


def missing_reference_from_error(error: IntegrityError) -> tuple[str | None, str | None]:
    """Return ``(field, value)`` of a foreign key violation; SQLite reports neither."""

    detail = str(getattr(error, "orig", None) or error)
    match = _POSTGRES_FOREIGN_KEY_PATTERN.search(detail)
    if match:
        return match.group(1), match.group(2)
    return None, None
