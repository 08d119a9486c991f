"""ABOUTME: Unit tests for two-factor setup, setup verification, status and backup code regeneration
ABOUTME: Uses the fake unit of work with real TOTP secrets"""

import uuid
from datetime import UTC, datetime

import pyotp
import pytest

from tests.fakes import FakeUnitOfWork
from v2backoffice.domain.users import User
from v2backoffice.service_layer import pending_tokens, totp_service, two_factor_service
from v2backoffice.service_layer.exceptions import (
    InvalidPendingToken,
    InvalidTwoFactorCode,
    TwoFactorNotConfigured,
    UserNotFoundError,
)

ISSUER = "V2 Test"
NOW = datetime(2026, 4, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def uow():
    return FakeUnitOfWork()


@pytest.fixture
def user(uow):
    user = User(email="jane@example.com", password_hash="hash")
    uow.users.add(user)
    return user


class TestSetupForUser:
    def test_creates_credential(self, uow, user):
        setup = two_factor_service.setup_for_user(uow, user.id, ISSUER)

        assert setup.newly_created is True
        assert len(setup.backup_codes) == 10
        assert user.backup_codes == setup.backup_codes
        assert totp_service.decrypt_totp_secret(user.totp_secret_encrypted, user.id) == setup.secret
        assert totp_service.secret_from_provisioning_uri(setup.provisioning_uri) == setup.secret
        assert setup.qr_code_data_url.startswith("data:image/png;base64,")
        assert user.two_factor_setup_completed is False

    def test_second_call_returns_the_same_secret(self, uow, user):
        first = two_factor_service.setup_for_user(uow, user.id, ISSUER)
        second = two_factor_service.setup_for_user(uow, user.id, ISSUER)

        assert second.newly_created is False
        assert second.secret == first.secret
        assert second.backup_codes == first.backup_codes

    def test_backup_code_count(self, uow, user):
        assert len(two_factor_service.setup_for_user(uow, user.id, ISSUER, backup_code_count=4).backup_codes) == 4

    def test_unknown_user(self, uow):
        with pytest.raises(UserNotFoundError):
            two_factor_service.setup_for_user(uow, uuid.uuid4(), ISSUER)


class TestSetupDuringLogin:
    def test_uses_pending_token(self, uow, user):
        token = pending_tokens.issue_pending_token(user.id, "key", now=NOW)

        setup = two_factor_service.setup_during_login(uow, token, "key", ISSUER, now=NOW)

        assert setup.newly_created
        assert user.has_two_factor_secret

    def test_bad_pending_token(self, uow, user):
        with pytest.raises(InvalidPendingToken):
            two_factor_service.setup_during_login(uow, "garbage", "key", ISSUER, now=NOW)

        assert not user.has_two_factor_secret


class TestVerifySetup:
    def test_valid_code_completes_setup(self, uow, user):
        setup = two_factor_service.setup_for_user(uow, user.id, ISSUER)

        two_factor_service.verify_setup(uow, user.id, pyotp.TOTP(setup.secret).at(NOW), now=NOW)

        assert user.two_factor_setup_completed is True

    def test_invalid_code(self, uow, user):
        setup = two_factor_service.setup_for_user(uow, user.id, ISSUER)
        wrong = "000000" if pyotp.TOTP(setup.secret).at(NOW) != "000000" else "111111"

        with pytest.raises(InvalidTwoFactorCode, match="Invalid token. Please try again."):
            two_factor_service.verify_setup(uow, user.id, wrong, valid_window=0, now=NOW)

        assert user.two_factor_setup_completed is False

    def test_backup_codes_do_not_count(self, uow, user):
        setup = two_factor_service.setup_for_user(uow, user.id, ISSUER)

        with pytest.raises(InvalidTwoFactorCode):
            two_factor_service.verify_setup(uow, user.id, setup.backup_codes[0], now=NOW)

    def test_without_secret(self, uow, user):
        with pytest.raises(TwoFactorNotConfigured):
            two_factor_service.verify_setup(uow, user.id, "123456")


class TestStatus:
    def test_before_setup(self, uow, user):
        status = two_factor_service.get_status(uow, user.id)

        assert status == {
            "enabled": False,
            "hasSecret": False,
            "hasBackupCodes": False,
            "backupCodesRemaining": 0,
            "setupCompleted": False,
            "needsSetup": True,
            "canVerify": False,
        }

    def test_after_setup(self, uow, user):
        two_factor_service.setup_for_user(uow, user.id, ISSUER)
        user.consume_backup_code(user.backup_codes[0])

        status = two_factor_service.get_status(uow, user.id)

        assert status["enabled"] is True
        assert status["backupCodesRemaining"] == 9
        assert status["needsSetup"] is False


class TestRegenerateBackupCodes:
    def test_replaces_every_code(self, uow, user):
        setup = two_factor_service.setup_for_user(uow, user.id, ISSUER)

        codes = two_factor_service.regenerate_backup_codes(uow, user.id)

        assert len(codes) == 10
        assert user.backup_codes == codes
        assert not set(codes) & set(setup.backup_codes)

    def test_without_secret(self, uow, user):
        with pytest.raises(TwoFactorNotConfigured):
            two_factor_service.regenerate_backup_codes(uow, user.id)
