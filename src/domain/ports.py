"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols structurally,
without inheriting from them.
"""

from enum import Enum
from typing import Protocol

from .models import (
    EmailValidationRequest,
    PhoneValidationRequest,
    RegistrationSession,
    User,
    ValidatedTarget,
)


class ConfirmationStatus(Enum):
    """
    Three-way result of looking up a validation key.

    NO_SUCH_REQUEST covers empty, unknown, expired and removed keys.
    Whether that is a failure or a cue to move on depends on the caller:
    an active confirmation treats it as an expired registration, a poll
    treats it as "nothing left to wait for".
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    NO_SUCH_REQUEST = "no_such_request"


class RegistrationStep(str, Enum):
    """
    Explicit registration step stored alongside the session values.

    Transitions (forward, except a phone change which restarts the flow):
    - AWAITING_PHONE -> AWAITING_EMAIL (SMS code confirmed)
    - AWAITING_EMAIL -> COMPLETED (registration form accepted)
    - any -> AWAITING_PHONE (phone number changed)
    """

    AWAITING_PHONE = "awaiting_phone"
    AWAITING_EMAIL = "awaiting_email"
    COMPLETED = "completed"


class Channel(str, Enum):
    """Verification channel of a validation record."""

    PHONE = "phone"
    EMAIL = "email"


class ValidationRecordRepository(Protocol):
    """Port interface for pending/confirmed validation requests."""

    def save(self, request: PhoneValidationRequest | EmailValidationRequest) -> None:
        """Persist a new validation request."""
        ...

    def get(
        self, channel: Channel, key: str
    ) -> PhoneValidationRequest | EmailValidationRequest | None:
        """
        Look up a live validation request by key.

        Returns None when the key is unknown, removed, or older than
        the confirmation window.
        """
        ...

    def mark_confirmed(self, channel: Channel, key: str) -> None:
        """Flip the confirmed flag of a request to True."""
        ...

    def delete(self, channel: Channel, key: str) -> None:
        """Remove a request; unknown keys are ignored."""
        ...


class ValidatedTargetRepository(Protocol):
    """Port interface for phone numbers and email addresses already proven."""

    def save(self, channel: Channel, target: ValidatedTarget) -> None:
        ...

    def get_by_email(self, email: str) -> ValidatedTarget | None:
        ...

    def get_by_phone(self, phonenumber: str) -> ValidatedTarget | None:
        ...


class UserRepository(Protocol):
    """Port interface for the user-identity store."""

    def exists(self, username: str) -> bool:
        ...

    def get_by_name(self, username: str) -> User | None:
        ...

    def save(self, user: User) -> None:
        """Insert the user or update it in place (keyed by username)."""
        ...

    def remove_expire_date(self, username: str) -> None:
        """Mark a draft user as no longer a transient registration."""
        ...

    def count_pending_registrations(self) -> int:
        """Count draft users whose expire date lies in the future."""
        ...

    def get_confirmed_by_email(self, email: str) -> User | None:
        """Return a non-draft user owning this email address, if any."""
        ...

    def get_confirmed_by_phone(self, phonenumber: str) -> User | None:
        """Return a non-draft user owning this phone number, if any."""
        ...


class OrganizationRepository(Protocol):
    """Port interface for organization name lookups."""

    def exists(self, name: str) -> bool:
        ...


class CredentialStore(Protocol):
    """Port interface for password storage."""

    def save(self, username: str, password: str) -> None:
        """
        Store the password for a username.

        Raises:
            PasswordPolicyViolation: password rejected by policy
        """
        ...


class NotificationSender(Protocol):
    """Port interface for SMS or email delivery."""

    def send(self, target: str, message: str) -> None:
        ...


class SessionStore(Protocol):
    """Port interface for the client-correlated registration session."""

    def get_session(self, kind: str, name: str) -> RegistrationSession:
        """Return the caller's session, flagged is_new when absent or expired."""
        ...

    def save(self, session: RegistrationSession) -> None:
        ...


class LoginHandoff(Protocol):
    """Port interface for the login step following a registration."""

    def login_user(self, username: str, redirect_params: str) -> str:
        """Start the login step and return the URL the client should follow."""
        ...
