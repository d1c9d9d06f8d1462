"""
API error types.

Services raise these; the app-level handler in ``create_app`` turns them into
``{"error": message}`` JSON responses with the matching status code.
"""
from __future__ import annotations


class ApiError(Exception):
    status_code = 400

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class BadRequest(ApiError):
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class BookingConflictError(Conflict):
    """Raised when a room or instrument is busy for the requested period."""


class InternalError(ApiError):
    status_code = 500
