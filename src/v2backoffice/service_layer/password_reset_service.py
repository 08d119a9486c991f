"""ABOUTME: Password reset service layer for managing password recovery
ABOUTME: Handles reset token creation, validation and password updates"""

import logging
from dataclasses import dataclass
from datetime import datetime

from v2backoffice.domain.users import User, generate_reset_token

from .exceptions import InvalidResetToken, PasswordTooWeak
from .security import hash_password, validate_password_strength
from .unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PasswordResetRequest:
    email: str
    token: str


@dataclass(frozen=True)
class PasswordResetResult:
    user: User
    # the admin who created the account, to be told about the change
    creator_email: str | None


def request_password_reset(
    uow: AbstractUnitOfWork, email: str, now: datetime | None = None
) -> PasswordResetRequest | None:
    """
    Create a password reset token for the account, if there is one.

    Callers must answer the same way whether or not this returns anything, so
    the response never reveals which emails have accounts. Email sending
    happens in the caller.
    """
    with uow:
        user = uow.users.get_by_email(email)
        if user is None or not user.is_active:
            logger.info("Password reset requested for an unknown or inactive account")
            return None

        token = generate_reset_token()
        user.start_password_reset(token, now=now)
        request = PasswordResetRequest(email=user.email, token=token)
        uow.commit()
        return request


def reset_password_with_token(
    uow: AbstractUnitOfWork,
    email: str,
    token: str,
    new_password: str,
    now: datetime | None = None,
) -> PasswordResetResult:
    """
    Reset user password using a valid token.

    Raises:
        InvalidResetToken: If the token does not match the email or has expired
        PasswordTooWeak: If password doesn't meet requirements
    """
    with uow:
        user = uow.users.get_by_email(email)
        if user is None or not user.reset_token_matches(token, now=now):
            raise InvalidResetToken()

        is_valid, error_msg = validate_password_strength(new_password, user)
        if not is_valid:
            raise PasswordTooWeak(error_msg)

        user.set_password_hash(hash_password(new_password))
        user.clear_password_reset()

        creator_email = None
        if user.created_by:
            creator = uow.users.get(user.created_by)
            creator_email = creator.email if creator else None

        result = PasswordResetResult(user=user.create_detached_copy(), creator_email=creator_email)
        uow.commit()
        return result
