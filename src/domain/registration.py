"""
Registration orchestrator - Dual-channel verification flow.

This module drives a registration in which the candidate proves control
of a phone number (SMS code) and then of an email address (link) before
the draft user becomes a real account.

Registration Steps
==================

    AWAITING_PHONE --(SMS code confirmed)--> AWAITING_EMAIL
    AWAITING_EMAIL --(link visited, form)--> COMPLETED
    any            --(phone changed)-------> AWAITING_PHONE

The step is recorded in the session for clients, but every decision is
re-derived from the session values and the confirmation status reported
by the two validation services, so a stale step tag can never unlock a
transition on its own.

Ordering rule: an email validation is only issued once the phone is
confirmed, and never in the same call that (re)issues a phone
validation. This keeps at most one outstanding challenge per step.

Sessions
========

The session is owned by the orchestrator for the duration of one call
and written back explicitly. There is no locking per session key: two
concurrent calls for the same client both read the same values and the
last save wins. A lost key only costs the user a resend.

On completion the session is emptied but kept, holding only
``redirectparams`` and the COMPLETED step: the login step reads the
redirect parameters from it.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import NoReturn

from .exceptions import (
    EmailMismatch,
    EmailNotConfirmed,
    InvalidOrExpiredKey,
    MissingPhoneCode,
    PasswordPolicyViolation,
    RegistrationCapacityReached,
    RegistrationRejected,
    SessionExpired,
)
from .formats import (
    is_valid_email,
    is_valid_name,
    is_valid_phonenumber,
    is_valid_username,
    normalize_email,
    username_base,
)
from .models import RegistrationSession, User
from .ports import (
    ConfirmationStatus,
    CredentialStore,
    LoginHandoff,
    OrganizationRepository,
    RegistrationStep,
    SessionStore,
    UserRepository,
    ValidatedTargetRepository,
)
from .validation import EmailValidationService, PhoneValidationService

logger = logging.getLogger(__name__)

SESSION_KIND = "registration"
SESSION_NAME = "registrationdetails"

MAX_PENDING_REGISTRATIONS = 10000


@dataclass
class RegistrationOrchestrator:
    """
    Flow controller for the registration state machine.

    Composes the two validation services and the session store, and
    writes the draft user, its password and finally the confirmed
    account through the identity ports.
    """

    sessions: SessionStore
    users: UserRepository
    organizations: OrganizationRepository
    credentials: CredentialStore
    validated_targets: ValidatedTargetRepository
    phone_validation: PhoneValidationService
    email_validation: EmailValidationService
    login_handoff: LoginHandoff
    max_pending_registrations: int = MAX_PENDING_REGISTRATIONS
    draft_user_grace: timedelta = timedelta(hours=24)

    def open_session(self) -> RegistrationStep:
        """Make sure the client holds a registration session cookie."""
        session = self._get_session()
        self.sessions.save(session)
        return self._step(session)

    def validate_info(
        self,
        firstname: str,
        lastname: str,
        email: str,
        phone: str,
        password: str,
        locale: str = "",
        base_url: str = "",
    ) -> RegistrationStep:
        """
        Create or update the draft user and start the required validations.

        Entry point of the flow; a new session is accepted here. The
        username is derived once, when the draft is created, and never
        changes afterwards so that confirmed validations and the stored
        password keep pointing at an existing user.

        Raises:
            RegistrationRejected: a detail is invalid or already in use
            RegistrationCapacityReached: too many pending registrations
        """
        if not is_valid_name(firstname.lower()):
            raise RegistrationRejected("invalid_first_name")
        if not is_valid_name(lastname.lower()):
            raise RegistrationRejected("invalid_last_name")

        count = self.users.count_pending_registrations()
        logger.debug("Pending registrations: %d", count)
        if count >= self.max_pending_registrations:
            logger.warning("Maximum amount of pending registrations reached")
            raise RegistrationCapacityReached(count)

        email = normalize_email(email)
        phone = phone.strip()
        if not is_valid_email(email):
            raise RegistrationRejected("invalid_email_format")

        session = self._get_session()
        validating_username = session.get("username")
        validating_phonenumber = session.get("phonenumber")
        validating_email = session.get("email")
        validating_password = session.get("password")

        self._ensure_email_available(email, validating_username)
        if not is_valid_phonenumber(phone):
            raise RegistrationRejected("invalid_phonenumber")
        self._ensure_phone_available(phone, validating_username)

        phone_changed = validating_phonenumber != phone
        email_changed = validating_email != email

        user = self.users.get_by_name(validating_username) if validating_username else None
        if user is None:
            username = self._unique_username(firstname, lastname)
            logger.debug("Creating new user with username %s", username)
            user = User(
                username=username,
                firstname=firstname,
                lastname=lastname,
                email=email,
                phone=phone,
                expire=datetime.now(timezone.utc) + self.draft_user_grace,
            )
            self.users.save(user)
            session.values["username"] = username
        else:
            username = user.username
            user.firstname = firstname
            user.lastname = lastname
            user.email = email
            user.phone = phone
            self.users.save(user)

        password_digest = _digest(password)
        if validating_password != password_digest or validating_username != username:
            logger.debug("Saving user password")
            try:
                self.credentials.save(username, password)
            except PasswordPolicyViolation:
                # keep the draft bound to this session for the retry
                self.sessions.save(session)
                raise RegistrationRejected("invalid_password") from None
            session.values["password"] = password_digest

        old_phone_key = session.get("phonenumbervalidationkey")
        phone_confirmed = (
            self.phone_validation.confirmation_status(old_phone_key)
            is ConfirmationStatus.CONFIRMED
        )

        session.values["phonenumber"] = phone
        if phone_changed:
            _expire(self.phone_validation, old_phone_key)
            session.values["phonenumbervalidationkey"] = self.phone_validation.request_validation(
                username, phone, base_url + "/phonevalidation", locale
            )
            session.values["step"] = RegistrationStep.AWAITING_PHONE.value

        session.values["email"] = email
        if email_changed and phone_confirmed and not phone_changed:
            _expire(self.email_validation, session.get("emailvalidationkey"))
            session.values["emailvalidationkey"] = self.email_validation.request_validation(
                username, email, base_url + "/emailvalidation", locale
            )
            session.values["step"] = RegistrationStep.AWAITING_EMAIL.value

        self.sessions.save(session)
        return self._step(session)

    def confirm_phone_code(self, code: str) -> bool:
        """
        Confirm the phone number with the code typed into the SMS form.

        Raises:
            SessionExpired: no established session, or the validation expired
            MissingPhoneCode: phone not confirmed and no code supplied
            InvalidCode: code does not match
        """
        session = self._get_established_session()
        username = session.get("username")
        key = session.get("phonenumbervalidationkey")

        if self.phone_validation.confirmation_status(key) is not ConfirmationStatus.CONFIRMED:
            if not code:
                logger.debug("No SMS code provided and phone not confirmed yet")
                raise MissingPhoneCode()
            self._confirm_phone(session, key, code)

        self.users.remove_expire_date(username)
        session.values["step"] = RegistrationStep.AWAITING_EMAIL.value
        self.sessions.save(session)
        return True

    def change_phone_number(
        self, phone: str, locale: str = "", base_url: str = ""
    ) -> RegistrationStep:
        """
        Replace the phone number being validated and send a new SMS.

        Raises:
            SessionExpired: no established session or draft user
            RegistrationRejected: invalid or already used phone number
        """
        session = self._get_established_session()
        username = session.get("username")

        phone = phone.strip()
        if not is_valid_phonenumber(phone):
            logger.debug("Invalid phone number")
            raise RegistrationRejected("invalid_phonenumber")
        self._ensure_phone_available(phone, username)

        user = self.users.get_by_name(username)
        if user is None:
            self._reject_expired(session)
        user.phone = phone
        self.users.save(user)

        _expire(self.phone_validation, session.get("phonenumbervalidationkey"))
        session.values["phonenumbervalidationkey"] = self.phone_validation.request_validation(
            username, phone, base_url + "/phonevalidation", locale
        )
        session.values["phonenumber"] = phone
        session.values["step"] = RegistrationStep.AWAITING_PHONE.value
        self.sessions.save(session)
        return RegistrationStep.AWAITING_PHONE

    def process_registration_form(self, phonenumbercode: str, redirectparams: str) -> str:
        """
        Finalize the registration once both channels are confirmed.

        The phone may still be confirmed here with ``phonenumbercode``.
        The email must already be confirmed through its link.

        Returns:
            URL of the login step the client should follow

        Raises:
            SessionExpired: no established session, or the validation expired
            MissingPhoneCode: phone not confirmed and no code supplied
            InvalidCode: SMS code does not match
            EmailNotConfirmed: email link not visited yet
        """
        session = self._get_established_session()
        username = session.get("username")
        phone_key = session.get("phonenumbervalidationkey")

        if self.phone_validation.confirmation_status(phone_key) is not ConfirmationStatus.CONFIRMED:
            if not phonenumbercode:
                logger.debug("No SMS code provided and phone not confirmed yet")
                raise MissingPhoneCode()
            self._confirm_phone(session, phone_key, phonenumbercode)

        # the phone number is confirmed from here on
        self.users.remove_expire_date(username)

        email_key = session.get("emailvalidationkey")
        if self.email_validation.confirmation_status(email_key) is not ConfirmationStatus.CONFIRMED:
            logger.debug("Email not confirmed yet")
            raise EmailNotConfirmed()

        session.values.clear()
        session.values["redirectparams"] = redirectparams
        session.values["step"] = RegistrationStep.COMPLETED.value
        self.sessions.save(session)
        logger.info("Registration completed for %s", username)
        return self.login_handoff.login_user(username, redirectparams)

    def resend_validation_info(
        self, email: str, locale: str = "", base_url: str = ""
    ) -> RegistrationStep:
        """
        Re-issue whichever validation is still outstanding.

        The phone SMS is resent to the number stored in the session while
        its validation is pending. The email is (re)sent once the phone is
        confirmed and the email is not, but only to the address stored in
        the session; a different address is refused.

        Raises:
            SessionExpired: no established session
            EmailMismatch: email differs from the one in the session
        """
        email = normalize_email(email)
        session = self._get_established_session()
        username = session.get("username")

        phone_key = session.get("phonenumbervalidationkey")
        phone_status = self.phone_validation.confirmation_status(phone_key)
        if phone_status is ConfirmationStatus.PENDING:
            _expire(self.phone_validation, phone_key)
            session.values["phonenumbervalidationkey"] = self.phone_validation.request_validation(
                username, session.get("phonenumber"), base_url + "/phonevalidation", locale
            )
        elif phone_status is ConfirmationStatus.CONFIRMED:
            logger.debug("Phone is already confirmed, ignoring new phone validation request")
        else:
            logger.debug("No phone validation to resend for %s", username)

        email_key = session.get("emailvalidationkey")
        email_status = self.email_validation.confirmation_status(email_key)
        if email_status is ConfirmationStatus.CONFIRMED:
            logger.debug("Email is already confirmed, ignoring new email validation request")
        elif phone_status is ConfirmationStatus.CONFIRMED:
            if session.get("email") != email:
                self.sessions.save(session)
                logger.info(
                    "Attempt to resend the registration email validation to an address "
                    "other than the one stored in the session"
                )
                raise EmailMismatch()
            _expire(self.email_validation, email_key)
            session.values["emailvalidationkey"] = self.email_validation.request_validation(
                username, email, base_url + "/emailvalidation", locale
            )
            session.values["step"] = RegistrationStep.AWAITING_EMAIL.value

        self.sessions.save(session)
        return self._step(session)

    def check_phone_confirmation(self) -> bool:
        """Poll the phone validation; True also means "stop waiting"."""
        return self._poll("phonenumbervalidationkey", self.phone_validation)

    def check_email_confirmation(self) -> bool:
        """Poll the email validation; True also means "stop waiting"."""
        return self._poll("emailvalidationkey", self.email_validation)

    def check_username(self, username: str) -> str | None:
        """
        Check whether a username is well-formed and free.

        Returns:
            None when available, else the rejection reason
        """
        if not is_valid_username(username):
            logger.debug("Invalid username format: %s", username)
            return "invalid_username_format"
        if self.users.exists(username):
            logger.debug("Username %s already taken", username)
            return "user_exists"
        if self.organizations.exists(username):
            logger.debug("Organization with name %s already exists", username)
            return "organization_exists"
        return None

    def _poll(
        self, key_name: str, service: PhoneValidationService | EmailValidationService
    ) -> bool:
        # Answering True lets the client submit the form, which then
        # reports the authoritative error.
        session = self._get_session()
        if not session.is_established:
            logger.debug("Polled without an established registration session")
            return True
        status = service.confirmation_status(session.get(key_name))
        return status is not ConfirmationStatus.PENDING

    def _confirm_phone(self, session: RegistrationSession, key: str, code: str) -> None:
        try:
            self.phone_validation.confirm_validation(key, code)
        except InvalidOrExpiredKey:
            self._reject_expired(session)

    def _get_session(self) -> RegistrationSession:
        return self.sessions.get_session(SESSION_KIND, SESSION_NAME)

    def _get_established_session(self) -> RegistrationSession:
        session = self._get_session()
        if not session.is_established:
            self._reject_expired(session)
        return session

    def _reject_expired(self, session: RegistrationSession) -> NoReturn:
        # Saving hands the client a fresh session cookie.
        self.sessions.save(session)
        logger.debug("Registration session expired")
        raise SessionExpired()

    def _unique_username(self, firstname: str, lastname: str) -> str:
        base = username_base(firstname, lastname)
        counter = 1
        while True:
            candidate = f"{base}{counter}"
            if not self.users.exists(candidate) and not self.organizations.exists(candidate):
                return candidate
            counter += 1

    def _ensure_email_available(self, email: str, username: str) -> None:
        validated = self.validated_targets.get_by_email(email)
        owner = self.users.get_confirmed_by_email(email)
        if (validated is not None and validated.username != username) or (
            owner is not None and owner.username != username
        ):
            raise RegistrationRejected("email_already_used")

    def _ensure_phone_available(self, phone: str, username: str) -> None:
        validated = self.validated_targets.get_by_phone(phone)
        owner = self.users.get_confirmed_by_phone(phone)
        if (validated is not None and validated.username != username) or (
            owner is not None and owner.username != username
        ):
            raise RegistrationRejected("phone_already_used")

    @staticmethod
    def _step(session: RegistrationSession) -> RegistrationStep:
        value = session.values.get("step")
        if value in {step.value for step in RegistrationStep}:
            return RegistrationStep(value)
        return RegistrationStep.AWAITING_PHONE


def _expire(service: PhoneValidationService | EmailValidationService, key: str) -> None:
    """Invalidate a superseded validation; failures only cost a stale record."""
    try:
        service.expire_validation(key)
    except Exception as e:
        logger.debug("Failed to expire validation %s: %s", key, e)


def _digest(password: str) -> str:
    # Only a digest of the password lives in the session; it is used to
    # detect changes, never to authenticate.
    return hashlib.sha256(password.encode()).hexdigest()
