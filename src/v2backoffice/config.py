"""ABOUTME: Configuration management for the V2 back office Flask application
ABOUTME: Loads environment variables and provides configuration objects for different environments"""

import base64
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from cachelib.file import FileSystemCache
from dotenv import load_dotenv
from redis import Redis

load_dotenv()


class InvalidConfig(Exception):
    """Error for when the config is not valid"""


SQLITE_DB_URI = "sqlite:///:memory:"
DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"  # noqa: S105


@dataclass(slots=True, kw_only=True)
class PostgresCfg:
    user: str
    password: str
    host: str
    port: int
    db_name: str

    def to_url(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.db_name}"

    @classmethod
    def from_env(cls, default_db_name: str = "v2backoffice", user: str = "v2backoffice") -> "PostgresCfg":
        host = os.environ.get("DB_HOST", "localhost")
        default_port = 54321 if host == "localhost" else 5432
        return PostgresCfg(
            user=os.environ.get("DB_USER", user),
            password=os.environ.get("DB_PASSWORD", "abc123"),
            host=host,
            port=int(os.environ.get("DB_PORT", default_port)),
            db_name=os.environ.get("DB_NAME", default_db_name),
        )


def get_db_uri() -> str:
    return os.environ.get("DB_URI", PostgresCfg.from_env().to_url())


@dataclass(slots=True, kw_only=True)
class RedisCfg:
    host: str
    port: int
    db: str = ""

    def to_url(self) -> str:
        if self.db:
            return f"redis://{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}"

    @classmethod
    def from_env(cls) -> "RedisCfg":
        host = os.environ.get("REDIS_HOST", "localhost")
        default_port = 63791 if host == "localhost" else 6379
        port = int(os.environ.get("REDIS_PORT", default_port))
        return RedisCfg(host=host, port=port)


@dataclass(slots=True, kw_only=True)
class EmailCfg:
    backend: str
    host: str
    port: int
    username: str
    password: str
    use_tls: bool
    from_email: str
    from_name: str
    frontend_url: str

    @classmethod
    def from_env(cls) -> "EmailCfg":
        return EmailCfg(
            backend=os.environ.get("EMAIL_BACKEND", "console").lower().strip(),
            host=os.environ.get("SMTP_HOST", "localhost"),
            port=int(os.environ.get("SMTP_PORT", "1025")),
            username=os.environ.get("SMTP_USERNAME", ""),
            password=os.environ.get("SMTP_PASSWORD", ""),
            use_tls=to_bool(os.environ.get("SMTP_USE_TLS", "false"), context_str="SMTP_USE_TLS="),
            from_email=os.environ.get("EMAIL_FROM", "noreply@v2financial.local"),
            from_name=os.environ.get("EMAIL_FROM_NAME", "V2 Financial Group"),
            frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        )


@dataclass(slots=True, kw_only=True)
class TwoFactorCfg:
    issuer: str
    pending_token_minutes: int
    # number of 30 second steps either side of now that we accept
    valid_window: int
    backup_code_count: int

    @classmethod
    def from_env(cls) -> "TwoFactorCfg":
        return TwoFactorCfg(
            issuer=os.environ.get("TOTP_ISSUER", "V2 Financial Services"),
            pending_token_minutes=int(os.environ.get("PENDING_2FA_TOKEN_MINUTES", "15")),
            valid_window=int(os.environ.get("TOTP_VALID_WINDOW", "3")),
            backup_code_count=int(os.environ.get("BACKUP_CODE_COUNT", "10")),
        )


@dataclass(slots=True, kw_only=True)
class InvoiceCfg:
    upload_dir: Path
    entity_delay_seconds: float
    stale_after_minutes: int
    max_upload_bytes: int
    pdf_enabled: bool
    worker_concurrency: int

    @property
    def temp_dir(self) -> Path:
        return self.upload_dir / "temp"

    @property
    def templates_dir(self) -> Path:
        return self.upload_dir / "templates"

    @property
    def invoices_dir(self) -> Path:
        return self.upload_dir / "invoices"

    @classmethod
    def from_env(cls) -> "InvoiceCfg":
        return InvoiceCfg(
            upload_dir=Path(os.environ.get("UPLOAD_DIR", "uploads")),
            entity_delay_seconds=float(os.environ.get("INVOICE_ENTITY_DELAY_SECONDS", "2")),
            stale_after_minutes=int(os.environ.get("INVOICE_STALE_AFTER_MINUTES", "30")),
            # 10 MB
            max_upload_bytes=int(os.environ.get("INVOICE_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
            pdf_enabled=to_bool(os.environ.get("INVOICE_PDF_ENABLED", "true"), context_str="INVOICE_PDF_ENABLED="),
            worker_concurrency=int(os.environ.get("INVOICE_WORKER_CONCURRENCY", "2")),
        )


def to_bool(value: str | None, context_str: str = "") -> bool:
    """
    Convert string to boolean. Valid options (after stripping whitespace and making lower-case)
    - False: "false", "no", "off", "0", None, ""
    - True: "true", "yes", "on", "1"

    The `context_str` is there for the error message, to help find the issue.
    """
    if value is None:
        return False
    value = value.lower().strip()
    if value in ("false", "no", "off", "0", ""):
        return False
    if value in ("true", "yes", "on", "1"):
        return True
    raise ValueError(
        f"Cannot convert '{context_str}{value}' to boolean. "
        "Valid values are: true/false, 1/0, yes/no, on/off (case-insensitive)"
    )


def bool_environ_get(key: str, default: str = "") -> bool:
    return to_bool(os.environ.get(key, default), context_str=f"{key}=")


def is_development() -> bool:
    return os.environ.get("FLASK_ENV", "development").lower().strip() == "development"


def should_log_all_requests() -> bool:
    return bool_environ_get("LOG_ALL_REQUESTS")


def get_log_level() -> int:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper().strip()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise InvalidConfig(f"Unknown LOG_LEVEL: {level_name}")
    return level


def get_secret_key() -> str:
    return os.environ.get("SECRET_KEY", DEFAULT_SECRET_KEY)


def get_totp_encryption_key() -> bytes:
    """Master key used to encrypt TOTP secrets at rest.

    Must be base64 encoded and decode to exactly 32 bytes.
    """
    raw = os.environ.get("TOTP_ENCRYPTION_KEY", "")
    if not raw:
        raise InvalidConfig("TOTP_ENCRYPTION_KEY must be set")
    try:
        key = base64.b64decode(raw)
    except ValueError as error:
        raise InvalidConfig("TOTP_ENCRYPTION_KEY must be base64 encoded") from error
    if len(key) != 32:
        raise InvalidConfig("TOTP_ENCRYPTION_KEY must decode to 32 bytes")
    return key


class FlaskBaseConfig:
    """Base configuration class that loads from environment variables."""

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TESTING = False

    def __init__(self) -> None:
        self.SQLALCHEMY_DATABASE_URI = get_db_uri()
        self.SECRET_KEY: str = get_secret_key()
        self.FLASK_ENV: str = os.environ.get("FLASK_ENV", "development")
        self.DEBUG: bool = to_bool(os.environ.get("DEBUG", "False"), context_str="DEBUG=")
        self.FORCE_HTTPS: bool = bool_environ_get("FORCE_HTTPS")

        self.BABEL_DEFAULT_LOCALE = os.environ.get("BABEL_DEFAULT_LOCALE", "en")
        self.BABEL_DEFAULT_TIMEZONE = os.environ.get("BABEL_DEFAULT_TIMEZONE", "UTC")

        self.INVOICE_CFG = InvoiceCfg.from_env()
        self.TWO_FACTOR_CFG = TwoFactorCfg.from_env()
        self.EMAIL_CFG = EmailCfg.from_env()
        self.MAX_CONTENT_LENGTH = self.INVOICE_CFG.max_upload_bytes

        # Deployment configuration
        self.APPLICATION_ROOT = os.environ.get("APPLICATION_ROOT", "/")


class FlaskConfig(FlaskBaseConfig):
    def __init__(self) -> None:
        super().__init__()
        # Session configuration
        redis_cfg = RedisCfg.from_env()
        self.SESSION_TYPE = "redis"
        self.SESSION_REDIS = Redis(host=redis_cfg.host, port=redis_cfg.port)


class FlaskTestSQLiteConfig(FlaskBaseConfig):
    """Test configuration that uses SQLite in-memory database."""

    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.SQLALCHEMY_DATABASE_URI = SQLITE_DB_URI
        self.SECRET_KEY = "test-secret-key-aockgn298zx081238"  # noqa: S105
        self.FLASK_ENV = "testing"

        # Use filesystem for session cache for testing
        self.SESSION_TYPE = "cachelib"
        session_file_dir = Path(tempfile.gettempdir()) / "v2backoffice_flask_session"
        session_file_dir.mkdir(exist_ok=True)
        self.SESSION_CACHELIB = FileSystemCache(str(session_file_dir))


class FlaskProductionConfig(FlaskConfig):
    """Production configuration with stricter defaults."""

    def __init__(self) -> None:
        super().__init__()
        self.FLASK_ENV = "production"

        # Ensure production has proper secret key
        if self.SECRET_KEY == DEFAULT_SECRET_KEY:
            raise InvalidConfig("SECRET_KEY must be set in production")


def get_config(config_name: str = "") -> FlaskBaseConfig:
    """Return the appropriate configuration based on FLASK_ENV or config_name."""
    env = config_name.strip() or os.environ.get("FLASK_ENV", "development")
    env = env.lower().strip()

    config_classes = {
        "development": FlaskConfig,
        "testing": FlaskTestSQLiteConfig,
        "testing_sqlite": FlaskTestSQLiteConfig,
        "production": FlaskProductionConfig,
    }

    # Fall back to development if unknown config
    config_cls = config_classes.get(env, FlaskConfig)
    return config_cls()
