# ABOUTME: Django's password validators with plain English messages
# ABOUTME: so we can use them without configuring Django settings or its translation machinery

import re

from django.contrib.auth.password_validation import (
    CommonPasswordValidator,
    MinimumLengthValidator,
    NumericPasswordValidator,
)
from django.core.exceptions import ValidationError

# Django builds its messages with ngettext, which needs configured settings.
# Overriding the message methods is enough to keep it out of the way.


class SafeMinimumLengthValidator(MinimumLengthValidator):  # type: ignore[no-any-unimported]
    def get_error_message(self) -> str:
        return f"This password is too short. It must contain at least {self.min_length} characters."

    def get_help_text(self) -> str:
        return f"Your password must contain at least {self.min_length} characters."


class SafeCommonPasswordValidator(CommonPasswordValidator):  # type: ignore[no-any-unimported]
    """
    The internals are a little complex - we'll just override the error and help text.
    """

    def get_error_message(self) -> str:
        return "This password is too common."

    def get_help_text(self) -> str:
        return "Your password cannot be a commonly used password."


class SafeNumericPasswordValidator(NumericPasswordValidator):  # type: ignore[no-any-unimported]
    def get_error_message(self) -> str:
        return "This password is entirely numeric."

    def get_help_text(self) -> str:
        return "Your password cannot be entirely numeric."


class MixedCharacterClassValidator:
    """
    Validate that the password has a lower case letter, an upper case letter and a digit.
    """

    pattern = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

    def validate(self, password: str, user: object | None = None) -> None:
        if not self.pattern.match(password):
            raise ValidationError(self.get_error_message(), code="password_character_classes")

    def get_error_message(self) -> str:
        return "Password must contain at least one lowercase letter, one uppercase letter, and one number"

    def get_help_text(self) -> str:
        return "Your password must mix upper and lower case letters with at least one number."
