"""
Typed outcomes for listing operations.

Public service coroutines never raise for business failures: they return a
``Result`` whose ``error`` is one of the closed error enums below, so callers
check ``success`` before reading ``data``.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class CreateListingError(str, Enum):
    UNIT_NOT_FOUND = "UNIT_NOT_FOUND"
    UNIT_HAS_ACTIVE_LEASE = "UNIT_HAS_ACTIVE_LEASE"
    UNIT_ALREADY_LISTED = "UNIT_ALREADY_LISTED"
    INVALID_UNIT_DATA = "INVALID_UNIT_DATA"
    VALIDATION_FAILED = "VALIDATION_FAILED"


class RemoveListingError(str, Enum):
    UNIT_NOT_FOUND = "UNIT_NOT_FOUND"
    LISTING_NOT_FOUND = "LISTING_NOT_FOUND"
    CLEANUP_FAILED = "CLEANUP_FAILED"


class UpdateStatusError(str, Enum):
    LISTING_NOT_FOUND = "LISTING_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    VALIDATION_FAILED = "VALIDATION_FAILED"


class MaintenanceError(str, Enum):
    UNIT_NOT_FOUND = "UNIT_NOT_FOUND"
    LISTING_NOT_FOUND = "LISTING_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    VALIDATION_FAILED = "VALIDATION_FAILED"


class HistoryError(str, Enum):
    UNIT_NOT_FOUND = "UNIT_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"


class BulkOperationError(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    TRANSACTION_FAILED = "TRANSACTION_FAILED"


@dataclass(frozen=True)
class Result(Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: Enum | str, message: str | None = None) -> "Result[T]":
        code = error.value if isinstance(error, Enum) else str(error)
        return cls(success=False, error=code, message=message)

    def to_payload(self) -> dict[str, Any]:
        return {"success": self.success, "data": self.data, "error": self.error, "message": self.message}


class UnitLookupError(str, Enum):
    UNIT_NOT_FOUND = "UNIT_NOT_FOUND"


class QueryError(str, Enum):
    QUERY_FAILED = "QUERY_FAILED"


class AuditQueryError(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    PROPERTY_NOT_FOUND = "PROPERTY_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    QUERY_FAILED = "QUERY_FAILED"


class IntegrityCheckError(str, Enum):
    APPLICATION_NOT_FOUND = "APPLICATION_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    QUERY_FAILED = "QUERY_FAILED"
