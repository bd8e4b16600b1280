"""
Domain layer - Pure business logic with zero framework imports.

This package contains the dual-channel registration flow: the phone and
email validation services and the orchestrator sequencing them. It
defines its own port interfaces for infrastructure abstraction, ensuring
true hexagonal architecture decoupling.
"""

from .dispatch import NotificationDispatcher
from .exceptions import (
    BadRequest,
    EmailMismatch,
    EmailNotConfirmed,
    InvalidCode,
    InvalidOrExpiredKey,
    MissingPhoneCode,
    PasswordPolicyViolation,
    RegistrationCapacityReached,
    RegistrationError,
    RegistrationRejected,
    SessionExpired,
)
from .models import (
    EmailValidationRequest,
    PhoneValidationRequest,
    RegistrationSession,
    User,
    ValidatedTarget,
)
from .ports import Channel, ConfirmationStatus, RegistrationStep
from .registration import RegistrationOrchestrator
from .validation import EmailValidationService, PhoneValidationService

__all__ = [
    "BadRequest",
    "Channel",
    "ConfirmationStatus",
    "EmailMismatch",
    "EmailNotConfirmed",
    "EmailValidationRequest",
    "EmailValidationService",
    "InvalidCode",
    "InvalidOrExpiredKey",
    "MissingPhoneCode",
    "NotificationDispatcher",
    "PasswordPolicyViolation",
    "PhoneValidationRequest",
    "PhoneValidationService",
    "RegistrationCapacityReached",
    "RegistrationError",
    "RegistrationOrchestrator",
    "RegistrationRejected",
    "RegistrationSession",
    "RegistrationStep",
    "SessionExpired",
    "User",
    "ValidatedTarget",
]
