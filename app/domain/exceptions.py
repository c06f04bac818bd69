# app/domain/exceptions.py
"""Error taxonomy shared by the validator, the repository and the HTTP layer.

Every failure the API reports is an ``AppError`` subclass. The exception
handlers in ``app.api.errors`` turn them into the response envelope; nothing
below the HTTP layer knows about status codes other than through ``status_code``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict


class AppError(Exception):
    """Base class for all client-facing errors."""

    kind = "AppError"
    status_code = 500
    # details are only safe to send back for client errors
    expose_details = True

    def __init__(
        self,
        message: str,
        correlation_id: str | None = None,
        details: Dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.correlation_id = correlation_id
        self.details = details
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self, include_details: bool | None = None) -> Dict[str, Any]:
        if include_details is None:
            include_details = self.expose_details

        body: Dict[str, Any] = {
            "success": False,
            "error": self.kind,
            "message": self.message,
        }
        if self.correlation_id:
            body["correlationId"] = self.correlation_id
        if include_details and self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """Client input is malformed or out of bounds."""

    kind = "ValidationError"
    status_code = 400


class NotFoundError(AppError):
    kind = "NotFoundError"
    status_code = 404

    def __init__(self, resource: str, resource_id: str | None = None, correlation_id: str | None = None):
        message = (
            f"{resource} with id '{resource_id}' not found" if resource_id else f"{resource} not found"
        )
        super().__init__(message, correlation_id, {"resource": resource, "id": resource_id})


class ConflictError(AppError):
    """The resource collides with an existing one (duplicate product name)."""

    kind = "ConflictError"
    status_code = 409


class StorageError(AppError):
    """The backing store is unreachable or returned data we cannot read."""

    kind = "StorageError"
    status_code = 503
    expose_details = False


class InternalError(AppError):
    kind = "InternalServerError"
    status_code = 500
    expose_details = False


def to_app_error(exc: BaseException, correlation_id: str | None = None) -> AppError:
    if isinstance(exc, AppError):
        if exc.correlation_id is None:
            exc.correlation_id = correlation_id
        return exc
    return InternalError(
        "An unexpected error occurred",
        correlation_id,
        {"originalError": type(exc).__name__, "reason": str(exc)},
    )
