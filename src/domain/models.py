"""
Domain models - Plain data carried between the orchestrator and its ports.

These are framework-free dataclasses. Persistence adapters translate
them to and from rows; the HTTP layer never sees them directly.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class User:
    """A user record; a draft while ``expire`` is set."""

    username: str
    firstname: str
    lastname: str
    email: str
    phone: str
    expire: datetime | None = None


@dataclass
class PhoneValidationRequest:
    """Pending or confirmed SMS challenge for a phone number."""

    key: str
    owner: str
    phonenumber: str
    code: str
    confirmed: bool = False

    @property
    def target(self) -> str:
        return self.phonenumber


@dataclass
class EmailValidationRequest:
    """Pending or confirmed link challenge for an email address."""

    key: str
    owner: str
    email: str
    confirmed: bool = False

    @property
    def target(self) -> str:
        return self.email


@dataclass(frozen=True)
class ValidatedTarget:
    """Durable proof that ``username`` controls ``target``."""

    username: str
    target: str


@dataclass
class RegistrationSession:
    """
    Server-side registration session correlated to a client cookie.

    ``values`` is mutated in place by the orchestrator and written back
    through the session store. A session is *established* once it holds
    a username; anything else counts as an expired registration.
    """

    session_key: str
    kind: str = ""
    name: str = ""
    values: dict[str, Any] = field(default_factory=dict)
    is_new: bool = True
    created_at: datetime | None = None

    @property
    def is_established(self) -> bool:
        return not self.is_new and bool(self.values.get("username"))

    def get(self, name: str) -> str:
        """Return a string value, or an empty string when missing."""
        value = self.values.get(name)
        return value if isinstance(value, str) else ""
