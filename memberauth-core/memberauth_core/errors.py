"""
Error Taxonomy
==============
Exceptions raised by the OTP flow, the session layer and the profile API.

Every error carries an HTTP status code, a stable machine code and a message
that is safe to show to end users. Internal details belong in the logs only.
"""

from typing import Any, Optional


class MemberAuthError(Exception):
    """Base exception for all member authentication errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "code": self.code}


class ConfigurationError(MemberAuthError):
    """Raised when the service is started with unusable settings."""
    code = "CONFIG_ERROR"
    default_message = "Service misconfigured"


class ValidationError(MemberAuthError):
    """Input has the wrong shape (missing identifier, malformed email...)."""
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class Conflict(ValidationError):
    """A unique member attribute is already taken by another member."""
    code = "CONFLICT"
    default_message = "Value already in use"


class ChallengeNotFound(MemberAuthError):
    """No live challenge exists for the identifier."""
    status_code = 404
    code = "OTP_NOT_FOUND"
    default_message = "OTP session not found"


class ChallengeExpired(MemberAuthError):
    status_code = 400
    code = "OTP_EXPIRED"
    default_message = "OTP expired"


class AttemptsExhausted(MemberAuthError):
    status_code = 403
    code = "OTP_ATTEMPTS_EXHAUSTED"
    default_message = "Too many attempts. Request new OTP."


class InvalidCode(MemberAuthError):
    """Submitted code did not match; the attempt has been counted."""
    status_code = 401
    code = "OTP_INVALID"
    default_message = "Invalid OTP"

    def __init__(self, attempts_remaining: int, message: Optional[str] = None):
        self.attempts_remaining = attempts_remaining
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["attemptsRemaining"] = self.attempts_remaining
        return data


class DeliveryError(MemberAuthError):
    """The SMS/email provider failed to accept the code."""
    status_code = 502
    code = "DELIVERY_FAILED"
    default_message = "Failed to send OTP. Please try again."

    def __init__(self, message: Optional[str] = None, provider: str = "unknown", details: Any = None):
        self.provider = provider
        super().__init__(message, details=details)


class Unauthenticated(MemberAuthError):
    status_code = 401
    code = "UNAUTHENTICATED"
    default_message = "Not authorized"


class AccountNotFound(MemberAuthError):
    status_code = 404
    code = "MEMBER_NOT_FOUND"
    default_message = "Member not found"


class AccountUnverified(MemberAuthError):
    status_code = 403
    code = "MEMBER_UNVERIFIED"
    default_message = "Account is not verified"


class RateLimited(MemberAuthError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests from this IP"

    def __init__(self, retry_after: Optional[int] = None, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message)
