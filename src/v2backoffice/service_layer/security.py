"""ABOUTME: Security utilities for password hashing and strength checks
ABOUTME: Wraps werkzeug hashing and Django's password validators"""

from collections.abc import Iterable
from typing import Protocol

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from werkzeug.security import check_password_hash, generate_password_hash

from v2backoffice.service_layer import password_validation as pv

MIN_PASSWORD_LENGTH = 8


class PasswordValidator(Protocol):
    def validate(self, password: str, user: object | None = None) -> None: ...

    def get_help_text(self) -> str: ...


def hash_password(password: str) -> str:
    """Hash a password using werkzeug's secure method."""
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    return check_password_hash(password_hash, password)


def get_password_validators() -> Iterable[PasswordValidator]:
    return (
        pv.SafeCommonPasswordValidator(),
        pv.SafeMinimumLengthValidator(min_length=MIN_PASSWORD_LENGTH),
        pv.SafeNumericPasswordValidator(),
        pv.MixedCharacterClassValidator(),
    )


def validate_password_strength(password: str, user: object | None = None) -> tuple[bool, str]:
    """
    Validate password strength requirements.

    Returns tuple of (is_valid, error_message)
    """
    # We use the well maintained Django password validation
    try:
        validate_password(password, user=user, password_validators=get_password_validators())
    except ValidationError as error:
        return False, " ".join(error.messages)

    return True, ""


def password_validators_help_texts() -> list[str]:
    """
    Return a list of all help texts of all configured validators.
    """
    return [v.get_help_text() for v in get_password_validators()]
