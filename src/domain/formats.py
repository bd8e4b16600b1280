"""
Input format rules for registration details.

Pure functions, shared by the orchestrator and the username check.
"""

import re

from email_validator import EmailNotValidError, validate_email

_NAME_PATTERN = re.compile(r"^[^\W\d_]+(?:[ '\-][^\W\d_]+)*$")
_USERNAME_PATTERN = re.compile(r"^[a-z0-9_\-]{2,30}$")
_PHONE_PATTERN = re.compile(r"^\+[0-9]{6,50}$")

MAX_NAME_LENGTH = 60
MAX_EMAIL_LENGTH = 254


def is_valid_name(name: str) -> bool:
    """Letters separated by single spaces, hyphens or apostrophes."""
    name = name.strip()
    return 0 < len(name) <= MAX_NAME_LENGTH and bool(_NAME_PATTERN.match(name))


def is_valid_username(username: str) -> bool:
    return bool(_USERNAME_PATTERN.match(username))


def is_valid_email(email: str) -> bool:
    """Registration form only accepts printable ASCII addresses."""
    if len(email) > MAX_EMAIL_LENGTH or not email.isascii():
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_valid_phonenumber(phonenumber: str) -> bool:
    """International format: a plus sign followed by digits only."""
    return bool(_PHONE_PATTERN.match(phonenumber))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def username_base(firstname: str, lastname: str) -> str:
    """
    Build the username stem ``first_last_`` from a person's names.

    Whitespace is dropped and letters are lower-cased; the caller
    appends a numeric suffix to make it unique.
    """
    first = "".join(c.lower() for c in firstname if not c.isspace())
    last = "".join(c.lower() for c in lastname if not c.isspace())
    return f"{first}_{last}_"
