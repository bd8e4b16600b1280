"""
Unit tests for PhoneValidationService and EmailValidationService.

Tests domain logic with in-memory ports to verify:
- Request issuing, code generation and notification content
- Confirmation status lookups (pending, confirmed, no such request)
- Code confirmation and validated-target bookkeeping
- Idempotent expiry
"""

import re
from unittest.mock import Mock

import pytest

from src.domain.exceptions import InvalidCode, InvalidOrExpiredKey
from src.domain.ports import Channel, ConfirmationStatus
from src.domain.validation import EmailValidationService, PhoneValidationService


class TestPhoneRequestValidation:
    """Tests for issuing phone validations."""

    def test_new_request_is_not_confirmed(self, phone_service: PhoneValidationService) -> None:
        """A freshly issued request reports confirmed=False."""
        key = phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "en")

        assert phone_service.is_confirmed(key) is False
        assert phone_service.confirmation_status(key) is ConfirmationStatus.PENDING

    def test_code_is_six_digits(self, phone_service: PhoneValidationService, validation_records) -> None:
        """Generated SMS code is a 6-digit string (leading zeros preserved)."""
        key = phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "en")

        record = validation_records.get(Channel.PHONE, key)
        assert re.match(r"^\d{6}$", record.code)
        assert record.owner == "alice_smith_1"
        assert record.phonenumber == "+15551234567"

    def test_keys_are_unique(self, phone_service: PhoneValidationService) -> None:
        """Every request gets its own key."""
        keys = {
            phone_service.request_validation("bob_jones_1", "+15551234567", "https://x/pv", "en")
            for _ in range(10)
        }
        assert len(keys) == 10

    def test_sms_contains_code_and_link(
        self, phone_service: PhoneValidationService, validation_records, sms_sender, dispatcher
    ) -> None:
        """SMS carries the code and a link embedding code, key and locale."""
        key = phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "nl")
        dispatcher.shutdown(wait=True)

        code = validation_records.get(Channel.PHONE, key).code
        assert len(sms_sender.messages) == 1
        target, message = sms_sender.messages[0]
        assert target == "+15551234567"
        assert code in message
        assert f"https://x/pv?c={code}&k={key}&l=nl" in message
        assert message.startswith("Je registratiecode")

    def test_unknown_locale_falls_back_to_english(
        self, phone_service: PhoneValidationService, sms_sender, dispatcher
    ) -> None:
        """Messages for unknown locales use the English text."""
        phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "xx")
        dispatcher.shutdown(wait=True)

        assert sms_sender.messages[0][1].startswith("Your registration code")

    def test_delivery_failure_not_surfaced(
        self, validation_records, validated_targets, dispatcher
    ) -> None:
        """A failing transport does not fail the request; the record still exists."""
        sender = Mock()
        sender.send.side_effect = RuntimeError("gateway down")
        service = PhoneValidationService(
            records=validation_records,
            validated_targets=validated_targets,
            sender=sender,
            dispatcher=dispatcher,
        )

        key = service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "en")
        dispatcher.shutdown(wait=True)

        assert service.is_confirmed(key) is False
        assert sender.send.call_count == 2  # dispatcher fixture allows two attempts


class TestPhoneConfirmValidation:
    """Tests for confirming phone validations with the SMS code."""

    def test_correct_code_confirms(
        self, phone_service: PhoneValidationService, validation_records, validated_targets
    ) -> None:
        """Matching code flips confirmed and records the validated phone number."""
        key = phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "en")
        code = validation_records.get(Channel.PHONE, key).code

        phone_service.confirm_validation(key, code)

        assert phone_service.is_confirmed(key) is True
        validated = validated_targets.get_by_phone("+15551234567")
        assert validated is not None
        assert validated.username == "alice_smith_1"

    def test_wrong_code_raises_invalid_code(
        self, phone_service: PhoneValidationService, validation_records, validated_targets
    ) -> None:
        """Mismatching code raises InvalidCode and leaves the request unconfirmed."""
        key = phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "en")
        code = validation_records.get(Channel.PHONE, key).code
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(InvalidCode):
            phone_service.confirm_validation(key, wrong)

        assert phone_service.is_confirmed(key) is False
        assert validated_targets.get_by_phone("+15551234567") is None

    def test_each_attempt_checked_independently(
        self, phone_service: PhoneValidationService, validation_records
    ) -> None:
        """Several wrong attempts do not lock out the correct code."""
        key = phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "en")
        code = validation_records.get(Channel.PHONE, key).code

        for _ in range(5):
            with pytest.raises(InvalidCode):
                phone_service.confirm_validation(key, "not-a-code")

        phone_service.confirm_validation(key, code)
        assert phone_service.is_confirmed(key) is True

    def test_unknown_key_raises_invalid_or_expired(self, phone_service: PhoneValidationService) -> None:
        """Unknown key raises InvalidOrExpiredKey."""
        with pytest.raises(InvalidOrExpiredKey):
            phone_service.confirm_validation("unknown", "123456")

    def test_empty_key_raises_invalid_or_expired(self, phone_service: PhoneValidationService) -> None:
        """Empty key raises InvalidOrExpiredKey."""
        with pytest.raises(InvalidOrExpiredKey):
            phone_service.confirm_validation("", "123456")


class TestIsConfirmed:
    """Tests for confirmation lookups."""

    def test_empty_key_raises(self, phone_service: PhoneValidationService) -> None:
        with pytest.raises(InvalidOrExpiredKey):
            phone_service.is_confirmed("")

    def test_unknown_key_raises(self, email_service: EmailValidationService) -> None:
        with pytest.raises(InvalidOrExpiredKey):
            email_service.is_confirmed("does-not-exist")

    def test_status_of_unknown_key_is_no_such_request(self, phone_service: PhoneValidationService) -> None:
        assert phone_service.confirmation_status("nope") is ConfirmationStatus.NO_SUCH_REQUEST

    def test_channels_do_not_share_keys(
        self, phone_service: PhoneValidationService, email_service: EmailValidationService
    ) -> None:
        """A phone key is unknown to the email service."""
        key = phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "en")

        assert email_service.confirmation_status(key) is ConfirmationStatus.NO_SUCH_REQUEST


class TestExpireValidation:
    """Tests for idempotent expiry."""

    def test_expire_removes_request(self, phone_service: PhoneValidationService) -> None:
        key = phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "en")

        phone_service.expire_validation(key)

        with pytest.raises(InvalidOrExpiredKey):
            phone_service.is_confirmed(key)

    def test_expire_twice_is_noop(self, email_service: EmailValidationService) -> None:
        key = email_service.request_validation("alice_smith_1", "alice@x.com", "https://x/ev", "en")

        email_service.expire_validation(key)
        email_service.expire_validation(key)

        assert email_service.confirmation_status(key) is ConfirmationStatus.NO_SUCH_REQUEST

    def test_expire_empty_key_is_noop(self, phone_service: PhoneValidationService, validation_records) -> None:
        validation_records.delete = Mock()

        phone_service.expire_validation("")

        validation_records.delete.assert_not_called()

    def test_expire_unknown_key_is_noop(self, phone_service: PhoneValidationService) -> None:
        phone_service.expire_validation("never-issued")

    def test_expired_request_cannot_be_confirmed(
        self, phone_service: PhoneValidationService, validation_records
    ) -> None:
        """A replayed code for a superseded request is refused."""
        key = phone_service.request_validation("alice_smith_1", "+15551234567", "https://x/pv", "en")
        code = validation_records.get(Channel.PHONE, key).code
        phone_service.expire_validation(key)

        with pytest.raises(InvalidOrExpiredKey):
            phone_service.confirm_validation(key, code)


class TestEmailValidation:
    """Tests for the email link channel."""

    def test_email_contains_link_with_key(
        self, email_service: EmailValidationService, email_sender, dispatcher
    ) -> None:
        key = email_service.request_validation("alice_smith_1", "alice@x.com", "https://x/ev", "en")
        dispatcher.shutdown(wait=True)

        target, message = email_sender.messages[0]
        assert target == "alice@x.com"
        assert f"https://x/ev?k={key}&l=en" in message

    def test_email_request_has_no_code(self, email_service: EmailValidationService, validation_records) -> None:
        key = email_service.request_validation("alice_smith_1", "alice@x.com", "https://x/ev", "en")

        record = validation_records.get(Channel.EMAIL, key)
        assert not hasattr(record, "code")
        assert record.confirmed is False

    def test_link_confirmation(
        self, email_service: EmailValidationService, validated_targets
    ) -> None:
        key = email_service.request_validation("alice_smith_1", "alice@x.com", "https://x/ev", "en")

        email_service.confirm_validation(key)

        assert email_service.is_confirmed(key) is True
        assert validated_targets.get_by_email("alice@x.com").username == "alice_smith_1"

    def test_link_confirmation_unknown_key(self, email_service: EmailValidationService) -> None:
        with pytest.raises(InvalidOrExpiredKey):
            email_service.confirm_validation("unknown")
