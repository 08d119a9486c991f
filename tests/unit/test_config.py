"""ABOUTME: Unit tests for the back office configuration module
ABOUTME: Tests environment variable loading and configuration class behavior"""

import base64
import logging
from pathlib import Path
from typing import ClassVar

import pytest

from v2backoffice.config import (
    FlaskProductionConfig,
    FlaskTestSQLiteConfig,
    InvalidConfig,
    InvoiceCfg,
    TwoFactorCfg,
    get_config,
    get_log_level,
    get_totp_encryption_key,
    to_bool,
)


class TestToBool:
    test_values: ClassVar = [
        ("true", True),
        ("TRUE", True),
        ("false", False),
        ("1", True),
        ("0", False),
        ("yes", True),
        ("no", False),
        ("on", True),
        ("off", False),
        ("", False),
        (None, False),
        ("  true  ", True),
    ]

    @pytest.mark.parametrize("bool_str,expected", test_values)
    def test_to_bool(self, bool_str: str, expected: bool) -> None:
        assert to_bool(bool_str) == expected

    def test_unknown_value_names_the_setting(self):
        with pytest.raises(ValueError, match="DEBUG=maybe"):
            to_bool("maybe", context_str="DEBUG=")


class TestProductionConfig:
    def test_production_config_with_secret_key(self, temp_env_vars):
        temp_env_vars(SECRET_KEY="production-secret-key")  # pragma: allowlist secret

        config = FlaskProductionConfig()

        assert config.SECRET_KEY == "production-secret-key"  # pragma: allowlist secret
        assert config.FLASK_ENV == "production"

    def test_production_config_without_secret_key(self, clear_env_vars):
        clear_env_vars("SECRET_KEY")
        with pytest.raises(InvalidConfig, match="SECRET_KEY must be set in production"):
            FlaskProductionConfig()


class TestGetConfig:
    def test_testing_uses_sqlite_and_cachelib_sessions(self):
        config = get_config("testing")

        assert isinstance(config, FlaskTestSQLiteConfig)
        assert config.SQLALCHEMY_DATABASE_URI == "sqlite:///:memory:"
        assert config.SESSION_TYPE == "cachelib"

    def test_upload_limit_follows_invoice_config(self, temp_env_vars):
        temp_env_vars(INVOICE_MAX_UPLOAD_BYTES="2048")

        assert get_config("testing").MAX_CONTENT_LENGTH == 2048


class TestInvoiceCfg:
    def test_defaults(self, clear_env_vars):
        clear_env_vars(
            "UPLOAD_DIR",
            "INVOICE_ENTITY_DELAY_SECONDS",
            "INVOICE_STALE_AFTER_MINUTES",
            "INVOICE_PDF_ENABLED",
            "INVOICE_WORKER_CONCURRENCY",
        )
        cfg = InvoiceCfg.from_env()

        assert cfg.upload_dir == Path("uploads")
        assert cfg.entity_delay_seconds == 2
        assert cfg.stale_after_minutes == 30
        assert cfg.max_upload_bytes == 10 * 1024 * 1024
        assert cfg.pdf_enabled is True
        assert cfg.worker_concurrency == 2

    def test_directories_live_under_upload_dir(self, temp_env_vars, tmp_path):
        temp_env_vars(UPLOAD_DIR=str(tmp_path))
        cfg = InvoiceCfg.from_env()

        assert cfg.temp_dir == tmp_path / "temp"
        assert cfg.templates_dir == tmp_path / "templates"
        assert cfg.invoices_dir == tmp_path / "invoices"


class TestTwoFactorCfg:
    def test_defaults(self, clear_env_vars):
        clear_env_vars("TOTP_ISSUER", "PENDING_2FA_TOKEN_MINUTES", "TOTP_VALID_WINDOW", "BACKUP_CODE_COUNT")
        cfg = TwoFactorCfg.from_env()

        assert cfg.issuer == "V2 Financial Services"
        assert cfg.pending_token_minutes == 15
        assert cfg.valid_window == 3
        assert cfg.backup_code_count == 10


class TestTotpEncryptionKey:
    def test_valid_key(self, temp_env_vars):
        raw = bytes(range(32))
        temp_env_vars(TOTP_ENCRYPTION_KEY=base64.b64encode(raw).decode())

        assert get_totp_encryption_key() == raw

    def test_missing_key(self, clear_env_vars):
        clear_env_vars("TOTP_ENCRYPTION_KEY")
        with pytest.raises(InvalidConfig, match="must be set"):
            get_totp_encryption_key()

    def test_wrong_length(self, temp_env_vars):
        temp_env_vars(TOTP_ENCRYPTION_KEY=base64.b64encode(b"short").decode())
        with pytest.raises(InvalidConfig, match="32 bytes"):
            get_totp_encryption_key()


class TestLogLevel:
    def test_named_level(self, temp_env_vars):
        temp_env_vars(LOG_LEVEL="warning")
        assert get_log_level() == logging.WARNING

    def test_unknown_level(self, temp_env_vars):
        temp_env_vars(LOG_LEVEL="chatty")
        with pytest.raises(InvalidConfig, match="CHATTY"):
            get_log_level()
