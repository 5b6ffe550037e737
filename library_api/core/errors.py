from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Application failure with an explicit HTTP status and error type.

    Services raise these; the handlers in ``library_api.api.errors`` are the
    only place they are turned into a response.
    """

    status_code: int = 500
    type: str = "ApplicationError"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.headers = headers


class ValidationError(AppError):
    status_code = 400
    type = "ValidationError"


class ConstraintError(AppError):
    status_code = 400
    type = "ConstraintError"


class AuthenticationError(AppError):
    status_code = 401
    type = "AuthenticationError"


class AuthorizationError(AppError):
    status_code = 403
    type = "AuthorizationError"


class NotFoundError(AppError):
    status_code = 404
    type = "NotFoundError"


class ConflictError(AppError):
    status_code = 409
    type = "ConflictError"


class RateLimitError(AppError):
    status_code = 429
    type = "RateLimitError"


class InternalServerError(AppError):
    status_code = 500
    type = "InternalServerError"
