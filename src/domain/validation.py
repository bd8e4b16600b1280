"""
Channel validation services - Phone (SMS code) and email (link) proofs.

Each service issues validation requests, answers whether a request is
confirmed, confirms it, and expires it. Records are persisted through a
ValidationRecordRepository; notifications are queued on the shared
NotificationDispatcher so that issuing a request never waits on SMS or
mail delivery.

A validation record is channel-agnostic: it knows its owner and target
but not the registration session that asked for it. The session is the
only place that remembers which keys belong to a registration.
"""

import logging
import secrets
from dataclasses import dataclass
from urllib.parse import quote

from .dispatch import NotificationDispatcher
from .exceptions import InvalidCode, InvalidOrExpiredKey
from .models import EmailValidationRequest, PhoneValidationRequest, ValidatedTarget
from .ports import (
    Channel,
    ConfirmationStatus,
    NotificationSender,
    ValidatedTargetRepository,
    ValidationRecordRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"

_SMS_MESSAGES = {
    "en": "Your registration code is {code}. Or confirm your phone number here: {link}",
    "nl": "Je registratiecode is {code}. Of bevestig je telefoonnummer hier: {link}",
    "fr": "Votre code d'inscription est {code}. Ou confirmez votre numéro ici : {link}",
}

_EMAIL_MESSAGES = {
    "en": "Please confirm your email address by opening the following link: {link}",
    "nl": "Bevestig je e-mailadres door de volgende link te openen: {link}",
    "fr": "Veuillez confirmer votre adresse e-mail en ouvrant le lien suivant : {link}",
}


def _translate(catalog: dict[str, str], locale: str, **values: str) -> str:
    template = catalog.get((locale or "").lower(), catalog[DEFAULT_LOCALE])
    return template.format(**values)


def _generate_key() -> str:
    return secrets.token_urlsafe(32)


@dataclass
class _ValidationService:
    """Lookup and expiry behaviour shared by both channels."""

    records: ValidationRecordRepository
    validated_targets: ValidatedTargetRepository
    sender: NotificationSender
    dispatcher: NotificationDispatcher

    channel = Channel.PHONE

    def confirmation_status(self, key: str) -> ConfirmationStatus:
        """Report whether the request behind ``key`` is pending or confirmed."""
        record = self._get(key)
        if record is None:
            return ConfirmationStatus.NO_SUCH_REQUEST
        if record.confirmed:
            return ConfirmationStatus.CONFIRMED
        return ConfirmationStatus.PENDING

    def is_confirmed(self, key: str) -> bool:
        """
        Check whether a validation request is confirmed.

        Raises:
            InvalidOrExpiredKey: key is empty, unknown or expired
        """
        status = self.confirmation_status(key)
        if status is ConfirmationStatus.NO_SUCH_REQUEST:
            raise InvalidOrExpiredKey(key)
        return status is ConfirmationStatus.CONFIRMED

    def expire_validation(self, key: str) -> None:
        """Remove a pending validation; empty and unknown keys are ignored."""
        if not key:
            return
        self.records.delete(self.channel, key)

    def _get(self, key: str):
        if not key:
            return None
        return self.records.get(self.channel, key)

    def _get_or_raise(self, key: str):
        record = self._get(key)
        if record is None:
            raise InvalidOrExpiredKey(key)
        return record


@dataclass
class PhoneValidationService(_ValidationService):
    """
    SMS validation of phone numbers.

    The SMS carries a numeric code and a link embedding code and key, so
    the number can be confirmed either by typing the code into the
    registration form or by opening the link on the phone.
    """

    code_length: int = 6

    channel = Channel.PHONE

    def request_validation(
        self, owner: str, phonenumber: str, confirmation_url: str, locale: str
    ) -> str:
        """
        Create a validation request and queue the SMS.

        Returns:
            The new validation key
        """
        request = PhoneValidationRequest(
            key=_generate_key(),
            owner=owner,
            phonenumber=phonenumber,
            code=self._generate_code(),
        )
        self.records.save(request)

        link = "%s?c=%s&k=%s&l=%s" % (
            confirmation_url,
            request.code,
            quote(request.key, safe=""),
            quote(locale or DEFAULT_LOCALE, safe=""),
        )
        message = _translate(_SMS_MESSAGES, locale, code=request.code, link=link)
        self.dispatcher.submit(self.sender, phonenumber, message)
        logger.debug("Phone validation requested for %s", owner)
        return request.key

    def confirm_validation(self, key: str, code: str) -> None:
        """
        Confirm a phone validation with the code from the SMS.

        Every attempt is checked independently; a wrong code leaves the
        request unconfirmed.

        Raises:
            InvalidOrExpiredKey: key is empty, unknown or expired
            InvalidCode: code does not match
        """
        request = self._get_or_raise(key)
        if not secrets.compare_digest(request.code.encode(), (code or "").encode()):
            raise InvalidCode(key)
        if request.confirmed:
            return
        self.validated_targets.save(
            self.channel, ValidatedTarget(username=request.owner, target=request.phonenumber)
        )
        self.records.mark_confirmed(self.channel, key)

    def _generate_code(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self.code_length))


@dataclass
class EmailValidationService(_ValidationService):
    """
    Link validation of email addresses.

    The key itself is the secret; opening the link confirms the address.
    The registration flow only polls and expires email validations.
    """

    channel = Channel.EMAIL

    def request_validation(
        self, owner: str, email: str, confirmation_url: str, locale: str
    ) -> str:
        """
        Create a validation request and queue the confirmation mail.

        Returns:
            The new validation key
        """
        request = EmailValidationRequest(key=_generate_key(), owner=owner, email=email)
        self.records.save(request)

        link = "%s?k=%s&l=%s" % (
            confirmation_url,
            quote(request.key, safe=""),
            quote(locale or DEFAULT_LOCALE, safe=""),
        )
        message = _translate(_EMAIL_MESSAGES, locale, link=link)
        self.dispatcher.submit(self.sender, email, message)
        logger.debug("Email validation requested for %s", owner)
        return request.key

    def confirm_validation(self, key: str) -> None:
        """
        Confirm an email validation from a visited link.

        Raises:
            InvalidOrExpiredKey: key is empty, unknown or expired
        """
        request = self._get_or_raise(key)
        if request.confirmed:
            return
        self.validated_targets.save(
            self.channel, ValidatedTarget(username=request.owner, target=request.email)
        )
        self.records.mark_confirmed(self.channel, key)
