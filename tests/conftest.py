"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory implementations of every domain port
- Notification dispatcher wiring with recording senders
- A fully wired RegistrationOrchestrator
"""

import dataclasses
from collections.abc import Generator
from datetime import datetime, timezone

import pytest

from src.domain.dispatch import NotificationDispatcher
from src.domain.exceptions import PasswordPolicyViolation
from src.domain.models import PhoneValidationRequest, RegistrationSession, User, ValidatedTarget
from src.domain.ports import Channel
from src.domain.registration import RegistrationOrchestrator
from src.domain.validation import EmailValidationService, PhoneValidationService


class InMemoryValidationRecords:
    """ValidationRecordRepository keeping copies, like a real store would."""

    def __init__(self) -> None:
        self.records: dict[tuple[Channel, str], object] = {}

    def save(self, request) -> None:
        channel = Channel.PHONE if isinstance(request, PhoneValidationRequest) else Channel.EMAIL
        self.records[(channel, request.key)] = dataclasses.replace(request)

    def get(self, channel: Channel, key: str):
        record = self.records.get((channel, key))
        return dataclasses.replace(record) if record is not None else None

    def mark_confirmed(self, channel: Channel, key: str) -> None:
        self.records[(channel, key)].confirmed = True

    def delete(self, channel: Channel, key: str) -> None:
        self.records.pop((channel, key), None)


class InMemoryValidatedTargets:
    def __init__(self) -> None:
        self.targets: dict[tuple[Channel, str], ValidatedTarget] = {}

    def save(self, channel: Channel, target: ValidatedTarget) -> None:
        self.targets[(channel, target.target)] = target

    def get_by_email(self, email: str) -> ValidatedTarget | None:
        return self.targets.get((Channel.EMAIL, email))

    def get_by_phone(self, phonenumber: str) -> ValidatedTarget | None:
        return self.targets.get((Channel.PHONE, phonenumber))


class InMemoryUsers:
    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.removed_expire: list[str] = []

    def exists(self, username: str) -> bool:
        return username in self.users

    def get_by_name(self, username: str) -> User | None:
        user = self.users.get(username)
        return dataclasses.replace(user) if user is not None else None

    def save(self, user: User) -> None:
        self.users[user.username] = dataclasses.replace(user)

    def remove_expire_date(self, username: str) -> None:
        self.removed_expire.append(username)
        if username in self.users:
            self.users[username].expire = None

    def count_pending_registrations(self) -> int:
        now = datetime.now(timezone.utc)
        return sum(1 for u in self.users.values() if u.expire is not None and u.expire > now)

    def get_confirmed_by_email(self, email: str) -> User | None:
        return next(
            (u for u in self.users.values() if u.email == email and u.expire is None), None
        )

    def get_confirmed_by_phone(self, phonenumber: str) -> User | None:
        return next(
            (u for u in self.users.values() if u.phone == phonenumber and u.expire is None), None
        )


class InMemoryOrganizations:
    def __init__(self) -> None:
        self.names: set[str] = set()

    def exists(self, name: str) -> bool:
        return name in self.names


class InMemoryCredentials:
    def __init__(self) -> None:
        self.passwords: dict[str, str] = {}
        self.save_count = 0

    def save(self, username: str, password: str) -> None:
        if len(password) < 6:
            raise PasswordPolicyViolation(username)
        self.save_count += 1
        self.passwords[username] = password


class InMemorySessionStore:
    """Session store for a single client holding one cookie."""

    def __init__(self) -> None:
        self.sessions: dict[str, dict] = {}
        self.cookie: str = ""
        self.save_count = 0
        self._counter = 0

    def get_session(self, kind: str, name: str) -> RegistrationSession:
        if self.cookie in self.sessions:
            return RegistrationSession(
                session_key=self.cookie,
                kind=kind,
                name=name,
                values=dict(self.sessions[self.cookie]),
                is_new=False,
            )
        self._counter += 1
        return RegistrationSession(session_key=f"session-{self._counter}", kind=kind, name=name)

    def save(self, session: RegistrationSession) -> None:
        self.save_count += 1
        self.sessions[session.session_key] = dict(session.values)
        self.cookie = session.session_key

    def expire(self) -> None:
        self.sessions.clear()

    @property
    def values(self) -> dict:
        return self.sessions.get(self.cookie, {})


class RecordingLoginHandoff:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def login_user(self, username: str, redirect_params: str) -> str:
        self.calls.append((username, redirect_params))
        return f"/login?{redirect_params}"


class RecordingSender:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def send(self, target: str, message: str) -> None:
        self.messages.append((target, message))


@pytest.fixture
def dispatcher() -> Generator[NotificationDispatcher, None, None]:
    """Single-worker dispatcher without backoff, drained after each test."""
    dispatcher = NotificationDispatcher(max_workers=1, max_attempts=2, backoff_seconds=0)
    yield dispatcher
    dispatcher.shutdown(wait=True)


@pytest.fixture
def validation_records() -> InMemoryValidationRecords:
    return InMemoryValidationRecords()


@pytest.fixture
def validated_targets() -> InMemoryValidatedTargets:
    return InMemoryValidatedTargets()


@pytest.fixture
def sms_sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def email_sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def phone_service(
    validation_records: InMemoryValidationRecords,
    validated_targets: InMemoryValidatedTargets,
    sms_sender: RecordingSender,
    dispatcher: NotificationDispatcher,
) -> PhoneValidationService:
    return PhoneValidationService(
        records=validation_records,
        validated_targets=validated_targets,
        sender=sms_sender,
        dispatcher=dispatcher,
    )


@pytest.fixture
def email_service(
    validation_records: InMemoryValidationRecords,
    validated_targets: InMemoryValidatedTargets,
    email_sender: RecordingSender,
    dispatcher: NotificationDispatcher,
) -> EmailValidationService:
    return EmailValidationService(
        records=validation_records,
        validated_targets=validated_targets,
        sender=email_sender,
        dispatcher=dispatcher,
    )


@pytest.fixture
def users() -> InMemoryUsers:
    return InMemoryUsers()


@pytest.fixture
def organizations() -> InMemoryOrganizations:
    return InMemoryOrganizations()


@pytest.fixture
def credentials() -> InMemoryCredentials:
    return InMemoryCredentials()


@pytest.fixture
def sessions() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def login_handoff() -> RecordingLoginHandoff:
    return RecordingLoginHandoff()


@pytest.fixture
def orchestrator(
    sessions: InMemorySessionStore,
    users: InMemoryUsers,
    organizations: InMemoryOrganizations,
    credentials: InMemoryCredentials,
    validated_targets: InMemoryValidatedTargets,
    phone_service: PhoneValidationService,
    email_service: EmailValidationService,
    login_handoff: RecordingLoginHandoff,
) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(
        sessions=sessions,
        users=users,
        organizations=organizations,
        credentials=credentials,
        validated_targets=validated_targets,
        phone_validation=phone_service,
        email_validation=email_service,
        login_handoff=login_handoff,
    )
