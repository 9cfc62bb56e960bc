"""Domain errors mapped to JSON responses at the HTTP boundary."""
from __future__ import annotations

from typing import Any

from fastapi import status


class TrackerError(Exception):
    """Base class for failures surfaced to API clients."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message, **self.extra}


class ValidationError(TrackerError):
    default_message = "Invalid request"


class NotFound(TrackerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidCredentials(TrackerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class Unauthorized(TrackerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(TrackerError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class EmailNotVerified(Forbidden):
    default_message = "Email verification required"

    def __init__(self, email: str) -> None:
        super().__init__(
            error_code="EMAIL_NOT_VERIFIED",
            email=email,
            require_verification=True,
        )


class Conflict(TrackerError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class RateLimited(TrackerError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Please wait before requesting another OTP"


class TooManyAttempts(RateLimited):
    default_message = "Maximum OTP attempts exceeded. Please try again after 1 hour"


class AlreadyVerified(TrackerError):
    default_message = "Email is already verified"


class NoOtpPending(TrackerError):
    default_message = "No OTP found. Please request a new OTP"


class Expired(TrackerError):
    default_message = "OTP has expired. Please request a new OTP"


class InvalidCode(TrackerError):
    default_message = "Invalid OTP. Please check and try again"


class InvalidOrExpired(TrackerError):
    default_message = "Invalid or expired OTP"


class InternalError(TrackerError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"
