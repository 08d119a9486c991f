"""ABOUTME: Two-factor authentication orchestration service
ABOUTME: High-level functions for 2FA setup, setup verification, status and backup code regeneration"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from v2backoffice.domain.two_factor import DEFAULT_BACKUP_CODE_COUNT, generate_backup_codes
from v2backoffice.domain.users import User

from . import totp_service
from .exceptions import InvalidTwoFactorCode, TwoFactorNotConfigured, UserNotFoundError
from .pending_tokens import DEFAULT_PENDING_TOKEN_MINUTES, resolve_pending_token
from .unit_of_work import AbstractUnitOfWork


@dataclass(frozen=True)
class TwoFactorSetup:
    secret: str
    provisioning_uri: str
    qr_code_data_url: str
    backup_codes: list[str]
    # False when the credential already existed and is just being shown again
    newly_created: bool


def _get_user(uow: AbstractUnitOfWork, user_id: uuid.UUID) -> User:
    user = uow.users.get(user_id)
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


def setup_for_user(
    uow: AbstractUnitOfWork,
    user_id: uuid.UUID,
    issuer: str,
    backup_code_count: int = DEFAULT_BACKUP_CODE_COUNT,
) -> TwoFactorSetup:
    """Create the user's TOTP secret and backup codes if they have none yet.

    An existing credential is never replaced: the same secret is returned so a
    user who reloads the setup page scans the same QR code.
    """
    with uow:
        user = _get_user(uow, user_id)
        newly_created = not user.has_two_factor_secret
        if newly_created:
            secret = totp_service.generate_totp_secret()
            user.set_two_factor_credential(
                totp_service.encrypt_totp_secret(secret, user.id),
                generate_backup_codes(backup_code_count),
            )
        else:
            assert user.totp_secret_encrypted is not None
            secret = totp_service.decrypt_totp_secret(user.totp_secret_encrypted, user.id)

        provisioning_uri = totp_service.build_provisioning_uri(secret, user.email, issuer)
        setup = TwoFactorSetup(
            secret=secret,
            provisioning_uri=provisioning_uri,
            qr_code_data_url=totp_service.generate_qr_code_data_url(provisioning_uri),
            backup_codes=list(user.backup_codes),
            newly_created=newly_created,
        )
        uow.commit()
        return setup


def setup_during_login(
    uow: AbstractUnitOfWork,
    pending_token: str,
    secret_key: str,
    issuer: str,
    now: datetime | None = None,
    max_age_minutes: int = DEFAULT_PENDING_TOKEN_MINUTES,
    backup_code_count: int = DEFAULT_BACKUP_CODE_COUNT,
) -> TwoFactorSetup:
    """Same as setup_for_user, for someone who has only passed the password step."""
    user_id = resolve_pending_token(pending_token, secret_key, now=now, max_age_minutes=max_age_minutes)
    return setup_for_user(uow, user_id, issuer, backup_code_count=backup_code_count)


def verify_setup(
    uow: AbstractUnitOfWork,
    user_id: uuid.UUID,
    code: str,
    valid_window: int = totp_service.DEFAULT_VALID_WINDOW,
    now: datetime | None = None,
) -> None:
    """Prove the authenticator app works by checking one code, then mark setup completed."""
    with uow:
        user = _get_user(uow, user_id)
        if not user.has_two_factor_secret:
            raise TwoFactorNotConfigured()
        assert user.totp_secret_encrypted is not None
        secret = totp_service.decrypt_totp_secret(user.totp_secret_encrypted, user.id)
        if not totp_service.verify_totp_code(secret, code, valid_window=valid_window, for_time=now):
            raise InvalidTwoFactorCode("Invalid token. Please try again.")
        user.mark_two_factor_setup_completed()
        uow.commit()


def get_status(uow: AbstractUnitOfWork, user_id: uuid.UUID) -> dict[str, Any]:
    with uow:
        user = _get_user(uow, user_id)
        return {
            # two-factor cannot be switched off, so having a secret means it is on
            "enabled": user.has_two_factor_secret,
            "hasSecret": user.has_two_factor_secret,
            "hasBackupCodes": bool(user.backup_codes),
            "backupCodesRemaining": len(user.backup_codes),
            "setupCompleted": user.two_factor_setup_completed,
            "needsSetup": not user.has_two_factor_secret,
            "canVerify": user.has_two_factor_secret,
        }


def regenerate_backup_codes(
    uow: AbstractUnitOfWork, user_id: uuid.UUID, count: int = DEFAULT_BACKUP_CODE_COUNT
) -> list[str]:
    """Throw away every unused backup code and issue a fresh set."""
    with uow:
        user = _get_user(uow, user_id)
        if not user.has_two_factor_secret:
            raise TwoFactorNotConfigured()
        backup_codes = generate_backup_codes(count)
        user.replace_backup_codes(backup_codes)
        uow.commit()
        return backup_codes
