"""
core/errors.py -- Typed failures raised by services and stores.

Every failure is tagged at the point of detection with the HTTP status it
maps to and a machine-readable code. api/main.py converts them into the
ErrorResponse envelope in a single exception handler; nothing below the API
layer imports FastAPI or builds responses.

is_operational distinguishes expected failures (bad input, bad credentials)
from programming errors. Only operational errors keep their message when
returned to the client.

Layer rule: core/ is the kernel. No imports from api/, auth/, db/, or mail/.
"""

from __future__ import annotations


class ApiError(Exception):
    """Base class for all typed failures."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, is_operational: bool = True) -> None:
        self.message = message or self.default_message
        self.is_operational = is_operational
        super().__init__(self.message)


class ValidationFailure(ApiError):
    """Bad input shape or constraint violation."""

    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class Unauthorized(ApiError):
    """Missing, invalid, expired or blacklisted credential."""

    status_code = 401
    code = "unauthorized"
    default_message = "Please authenticate"


class Forbidden(ApiError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class Conflict(ApiError):
    # Duplicate unique value (email). Reported as 400 like other input errors.
    status_code = 400
    code = "conflict"
    default_message = "Resource already exists."
