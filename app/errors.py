"""Error taxonomy shared by the QuizMark request handlers."""

from __future__ import annotations

from typing import Optional


class ApiError(RuntimeError):
    """Base class for failures reported to the caller as a JSON error body."""

    status_code = 500

    def __init__(self, message: str, *, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict[str, str]:
        payload = {"error": self.message}
        if self.reason:
            payload["reason"] = self.reason
        return payload


class InvalidRequest(ApiError):
    """Raised when the request body is malformed or a required field is missing."""

    status_code = 400


class Unauthorized(ApiError):
    """Raised when credentials do not match a stored account."""

    status_code = 401


class MethodNotAllowed(ApiError):
    """Raised when a route is called with an HTTP method it does not accept."""

    status_code = 405


class Conflict(ApiError):
    """Raised when an account with the same username already exists."""

    status_code = 409


class ConfigurationError(ApiError):
    """Raised when a required credential or connection string is not configured."""

    status_code = 500


class InternalError(ApiError):
    """Raised when a request fails for a reason the client cannot fix."""

    status_code = 500


class UpstreamServiceError(ApiError):
    """Raised when the AI provider answers with a non-success response."""

    status_code = 502
