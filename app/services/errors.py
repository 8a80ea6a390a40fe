"""
Error taxonomy of the signup flow.

Every failure carries the HTTP status it maps to and a client-safe message.
`cause` holds internal detail (driver errors, upstream responses) that is
logged server-side and never sent to the client.
The API layer converts them to JSON error bodies in one place.
"""

from typing import Any, Optional


class SignupError(Exception):
    """Base class for every failure the signup flow reports to the caller."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None, cause: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        self.details = details
        self.cause = cause
        super().__init__(self.message)


class ValidationError(SignupError):
    """Raised when mandatory request fields are missing."""
    status_code = 400
    message = "Missing required fields"


class IdentityLookupError(SignupError):
    """Raised when the identity service is unreachable or returned unusable data."""
    status_code = 500
    message = "Failed to verify device identity"


class BotDetected(SignupError):
    status_code = 403
    message = "Bot detected, account creation denied"


class DuplicateDevice(SignupError):
    status_code = 429
    message = "An account has already been created from this device"


class StorageError(SignupError):
    """Raised when the account could not be written or read."""
    status_code = 500
    message = "Failed to store account"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Any = None,
        cause: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, details, cause)
        if status_code is not None:
            self.status_code = status_code
