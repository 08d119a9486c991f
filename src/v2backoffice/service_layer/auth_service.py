"""ABOUTME: Two-step login handshake: password check, then TOTP or backup code
ABOUTME: The password step hands out a pending token; only the second step yields a user to log in"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_incrementing

from v2backoffice.domain.users import User

from .exceptions import (
    ConcurrentUpdateError,
    InvalidCredentials,
    InvalidTwoFactorCode,
    TransientInfrastructureError,
    TwoFactorNotConfigured,
)
from .pending_tokens import DEFAULT_PENDING_TOKEN_MINUTES, issue_pending_token, resolve_pending_token
from .security import verify_password
from .totp_service import DEFAULT_VALID_WINDOW, decrypt_totp_secret, verify_totp_code
from .unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

LOGIN_LOOKUP_ATTEMPTS = 3


@dataclass(frozen=True)
class LoginChallenge:
    """Result of a correct password: the caller must now supply a second factor."""

    pending_token: str
    needs_setup: bool


def _lookup_retrying(sleep: Callable[[float], None]) -> Retrying:
    # waits 1s then 2s between the three attempts
    return Retrying(
        stop=stop_after_attempt(LOGIN_LOOKUP_ATTEMPTS),
        wait=wait_incrementing(start=1, increment=1),
        retry=retry_if_exception_type(TransientInfrastructureError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )


def find_user_for_login(
    uow: AbstractUnitOfWork, email: str, sleep: Callable[[float], None] = time.sleep
) -> User | None:
    """Look the user up by email, retrying while the database is unreachable.

    Raises TransientInfrastructureError once every attempt has failed.
    """
    for attempt in _lookup_retrying(sleep):
        with attempt:
            with uow:
                user = uow.users.get_by_email(email)
                return user.create_detached_copy() if user else None
    return None  # pragma: no cover


def begin_login(
    uow: AbstractUnitOfWork,
    email: str,
    password: str,
    secret_key: str,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> LoginChallenge:
    """First step of the handshake.

    Unknown email, inactive account and wrong password all raise the same
    InvalidCredentials so callers cannot tell them apart.
    """
    user = find_user_for_login(uow, email, sleep=sleep)
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        raise InvalidCredentials()

    logger.info(f"Password accepted for {user.id}, two-factor step pending")
    return LoginChallenge(
        pending_token=issue_pending_token(user.id, secret_key, now=now),
        needs_setup=user.needs_two_factor_setup,
    )


def complete_login(
    uow: AbstractUnitOfWork,
    pending_token: str,
    code: str,
    secret_key: str,
    now: datetime | None = None,
    max_age_minutes: int = DEFAULT_PENDING_TOKEN_MINUTES,
    valid_window: int = DEFAULT_VALID_WINDOW,
) -> User:
    """Second step of the handshake.

    The code is tried as a TOTP code first and then as a backup code, which is
    consumed on success. The first successful verification also completes the
    two-factor setup. Returns the user to establish the session for.
    """
    user_id = resolve_pending_token(pending_token, secret_key, now=now, max_age_minutes=max_age_minutes)
    with uow:
        user = uow.users.get(user_id)
        if user is None or not user.is_active:
            raise InvalidCredentials()
        if not user.has_two_factor_secret:
            raise TwoFactorNotConfigured()

        assert user.totp_secret_encrypted is not None
        secret = decrypt_totp_secret(user.totp_secret_encrypted, user.id)
        if not verify_totp_code(secret, code, valid_window=valid_window, for_time=now):
            if not user.consume_backup_code(code):
                raise InvalidTwoFactorCode()
            logger.info(f"Backup code used by {user.id}, {len(user.backup_codes)} left")

        if not user.two_factor_setup_completed:
            user.mark_two_factor_setup_completed()

        detached_user = user.create_detached_copy()
        try:
            uow.commit()
        except ConcurrentUpdateError as error:
            # a parallel login changed the user first and may have spent the same backup code
            logger.warning(f"Concurrent two-factor login rejected for {user_id}")
            raise InvalidTwoFactorCode() from error
        return detached_user
