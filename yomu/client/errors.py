"""Error kinds raised by the client layer."""

from typing import Optional


class YomuError(Exception):
    """Base class for all reading-tracker client errors."""


class GatewayError(YomuError):
    """A rejected intent, carrying the message to show the user."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class ValidationError(GatewayError):
    """Missing or invalid required field."""


class AuthError(GatewayError):
    """Missing, expired or rejected credential."""


class NotFoundError(GatewayError):
    """Target entity does not exist (or is not owned by the user)."""


class ConflictError(GatewayError):
    """Unique constraint or state conflict, e.g. duplicate email."""


class ServerError(GatewayError):
    """5xx response from the backend."""


class NetworkError(GatewayError):
    """The request never produced an HTTP response."""


_ERRORS_BY_STATUS = {
    400: ValidationError,
    401: AuthError,
    404: NotFoundError,
    409: ConflictError,
}


def error_for_status(status: int, message: str) -> GatewayError:
    """Build the error kind matching an HTTP status code."""
    if status >= 500:
        return ServerError(message, status)
    return _ERRORS_BY_STATUS.get(status, GatewayError)(message, status)
