"""
Domain exceptions - Semantic error types for registration.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
The HTTP layer maps each family onto a status code:

- RegistrationRejected, InvalidCode -> 422 with a machine-readable reason
- SessionExpired (and EmailMismatch) -> 401
- BadRequest (MissingPhoneCode, EmailNotConfirmed) -> 400
- RegistrationCapacityReached and anything unexpected -> 500
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    pass


class InvalidOrExpiredKey(RegistrationError):
    """Validation key is empty, unknown, expired or already removed."""

    pass


class InvalidCode(RegistrationError):
    """Submitted SMS code does not match the pending validation."""

    reason = "invalid_sms_code"


class RegistrationRejected(RegistrationError):
    """Submitted registration details violate a business rule."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PasswordPolicyViolation(RegistrationError):
    """Password does not satisfy the credential policy."""

    pass


class SessionExpired(RegistrationError):
    """No established registration session for this client."""

    pass


class EmailMismatch(SessionExpired):
    """Resend requested for an email other than the one in the session."""

    pass


class BadRequest(RegistrationError):
    """Request cannot be processed in the current registration step."""

    pass


class MissingPhoneCode(BadRequest):
    """Phone is not confirmed yet and no SMS code was supplied."""

    pass


class EmailNotConfirmed(BadRequest):
    """Registration submitted before the email link was visited."""

    pass


class RegistrationCapacityReached(RegistrationError):
    """Too many pending registrations in the system."""

    pass
