"""Structured outcomes returned by every public service operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import OperationalError, SQLAlchemyError

PERMISSION_DENIED = "PermissionDenied"
NOT_FOUND = "NotFound"
ALREADY_RECORDED = "AlreadyRecorded"
TEMPLATE_MISSING = "TemplateMissing"
STORAGE_FAILURE = "StorageFailure"
MAIL_FAILURE = "MailFailure"
VALIDATION_FAILURE = "ValidationFailure"
BATCH_IN_PROGRESS = "BatchInProgress"

HTTP_STATUS = {
    PERMISSION_DENIED: 403,
    NOT_FOUND: 404,
    BATCH_IN_PROGRESS: 409,
    VALIDATION_FAILURE: 422,
    TEMPLATE_MISSING: 500,
    STORAGE_FAILURE: 503,
    MAIL_FAILURE: 502,
}


class EventHubError(Exception):
    code = "Error"
    retryable = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_reason(self) -> "Reason":
        return Reason(self.code, self.message, self.retryable, dict(self.details))


class PermissionDenied(EventHubError):
    code = PERMISSION_DENIED


class NotFound(EventHubError):
    code = NOT_FOUND


class ValidationFailure(EventHubError):
    code = VALIDATION_FAILURE


class TemplateMissing(EventHubError):
    code = TEMPLATE_MISSING


class StorageFailure(EventHubError):
    code = STORAGE_FAILURE

    def __init__(self, message: str, retryable: bool = False, **details: Any) -> None:
        super().__init__(message, **details)
        self.retryable = retryable


class MailFailure(EventHubError):
    code = MAIL_FAILURE

    def __init__(self, message: str, retryable: bool = False, **details: Any) -> None:
        super().__init__(message, **details)
        self.retryable = retryable


class BatchInProgress(EventHubError):
    code = BATCH_IN_PROGRESS
    retryable = True


def storage_failure(exc: SQLAlchemyError, action: str) -> StorageFailure:
    """Wrap a database error; disconnects and timeouts are retryable."""
    return StorageFailure(
        f"Failed to {action}",
        retryable=isinstance(exc, OperationalError),
        cause=exc.__class__.__name__,
    )


@dataclass(frozen=True)
class Reason:
    code: str
    message: str
    retryable: bool = False
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message, "retryable": self.retryable}
        if self.details:
            payload["details"] = self.details
        return payload


@dataclass(frozen=True)
class OperationResult:
    success: bool
    data: Any = None
    error: Reason | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(True, data=data)

    @classmethod
    def fail(cls, error: EventHubError | Reason) -> "OperationResult":
        if isinstance(error, EventHubError):
            error = error.to_reason()
        return cls(False, error=error)

    @property
    def status_code(self) -> int:
        if self.success or self.error is None:
            return 200
        return HTTP_STATUS.get(self.error.code, 500)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error.to_dict()
        return payload
