from __future__ import annotations

from typing import Any


class AppError(Exception):
    """
    Base class for failures reported back to the requester.

    Route handlers let these propagate; the handlers registered in
    `review_portal.main` turn them into a JSON envelope or an error page.
    """

    status_code = 400
    error_code = "APP_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationFailed(AppError):
    status_code = 400
    error_code = "VALIDATION_FAILED"


class NotAuthorized(AppError):
    status_code = 403
    error_code = "NOT_AUTHORIZED"


class NotFound(AppError):
    status_code = 404
    error_code = "NOT_FOUND"


class DuplicateSubmission(AppError):
    status_code = 409
    error_code = "DUPLICATE"
