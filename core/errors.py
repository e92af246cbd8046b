"""
core/errors.py -- Domain exception hierarchy for Work Mesh.

Services and stores raise these; api/main.py owns the single set of exception
handlers that renders them into the JSON envelope. Nothing below api/ needs to
know about HTTP beyond the status code carried on each class.

Layer rule: core/ is the kernel. No imports from api/, auth/, staffing/, notify/.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class for every error that maps onto an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[dict] = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = 400
    code = "bad_request"
    default_message = "Bad request"


class UnauthenticatedError(AppError):
    """Missing, invalid, or expired credential."""

    status_code = 401
    code = "unauthorized"
    default_message = "Not authenticated"


class ForbiddenError(AppError):
    """Authenticated, but the access role is not allowed."""

    status_code = 403
    code = "forbidden"
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class AlreadySubmittedError(ConflictError):
    code = "already_submitted"
    default_message = "This form has already been submitted"


class InternalError(AppError):
    """An invariant the application relies on does not hold."""
