"""
Service-layer error classes.

Services raise these; route handlers translate them to HTTP responses with
``to_http_exception``. Each class carries its HTTP status and a
machine-readable code.
"""

from fastapi import HTTPException


class ServiceError(Exception):
    """Base class for errors raised by the service layer.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
    """

    code = "SERVER_ERROR"
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed, missing or out-of-range input (400)."""

    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid input"


class InvalidOrExpiredToken(ServiceError):
    """Verification or reset token is unknown, used, or past its expiry (400)."""

    code = "INVALID_OR_EXPIRED_TOKEN"
    status_code = 400
    default_message = "Invalid or expired token"


class InvalidCredentials(ServiceError):
    """Generic sign-in failure. Never says which part was wrong (401)."""

    code = "INVALID_CREDENTIALS"
    status_code = 401
    default_message = "Invalid email/username or password"


class EmailNotVerified(ServiceError):
    """Correct account, but the email address was never verified (403)."""

    code = "EMAIL_NOT_VERIFIED"
    status_code = 403
    default_message = "Please verify your email before signing in"


class Forbidden(ServiceError):
    """Authenticated, but not the owner of the resource (403)."""

    code = "FORBIDDEN"
    status_code = 403
    default_message = "Forbidden"


class NotFound(ServiceError):
    """Referenced entity does not exist (404)."""

    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class Conflict(ServiceError):
    """Uniqueness violation (409)."""

    code = "CONFLICT"
    status_code = 409
    default_message = "Already exists"


class LimitExceeded(ServiceError):
    """Per-user cap reached (400)."""

    code = "LIMIT_EXCEEDED"
    status_code = 400
    default_message = "Limit exceeded"


class ConfigurationError(ServiceError):
    """Required server configuration is missing (500)."""

    code = "CONFIGURATION_ERROR"
    status_code = 500
    default_message = "Server is not configured"


class UpstreamFailure(ServiceError):
    """External catalog source unreachable or returned malformed data (500)."""

    code = "UPSTREAM_FAILURE"
    status_code = 500
    default_message = "Upstream request failed"


def to_http_exception(error: ServiceError) -> HTTPException:
    """
    Convert a service error to the HTTPException the route should raise.

    The machine-readable code goes in the X-Error-Code header so clients can
    tell e.g. EMAIL_NOT_VERIFIED apart from other 403s.
    """
    return HTTPException(
        status_code=error.status_code,
        detail=error.message,
        headers={"X-Error-Code": error.code},
    )
