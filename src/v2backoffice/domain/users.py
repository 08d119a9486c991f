"""ABOUTME: User domain model for back office authentication and administration
ABOUTME: Plain Python User carrying the password hash, role, reset token and two-factor credential"""

import secrets
import uuid
from datetime import UTC, datetime, timedelta

from .two_factor import verify_backup_code
from .value_objects import GlobalRole, validate_email

RESET_TOKEN_LIFETIME = timedelta(minutes=15)


def generate_reset_token() -> str:
    """Generate a random password reset token (64 hex characters)."""
    return secrets.token_hex(32)


class User:
    """User domain model for authentication and role management.

    Every account must pass two-factor authentication. The credential lives on the
    user: an encrypted TOTP secret, a list of unused backup codes and a flag saying
    whether the user has proved they can generate codes.
    """

    def __init__(
        self,
        email: str,
        password_hash: str,
        full_name: str = "",
        phone_number: str = "",
        role: GlobalRole = GlobalRole.USER,
        user_id: uuid.UUID | None = None,
        is_active: bool = True,
        created_by: uuid.UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        reset_token: str | None = None,
        reset_token_expires_at: datetime | None = None,
        totp_secret_encrypted: str | None = None,
        backup_codes: list[str] | None = None,
        two_factor_setup_completed: bool = False,
        version: int = 1,
    ):
        email = email.strip().lower()
        validate_email(email)

        if not password_hash:
            raise ValueError("User must have a password hash")

        self.id = user_id or uuid.uuid4()
        self.email = email
        self.password_hash = password_hash
        self.full_name = full_name
        self.phone_number = phone_number
        self.role = role
        self.is_active = is_active
        self.created_by = created_by
        self.created_at = created_at or datetime.now(UTC)
        self.updated_at = updated_at or self.created_at
        self.reset_token = reset_token
        self.reset_token_expires_at = reset_token_expires_at
        self.totp_secret_encrypted = totp_secret_encrypted
        self.backup_codes: list[str] = list(backup_codes) if backup_codes else []
        self.two_factor_setup_completed = two_factor_setup_completed
        self.version = version

    # couple of things required for flask_login
    @property
    def is_authenticated(self) -> bool:
        return self.is_active

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return str(self.id)

    @property
    def display_name(self) -> str:
        """Get user's display name, preferring full name over email."""
        if self.full_name:
            return self.full_name
        return self.email.split("@")[0]

    def is_admin(self) -> bool:
        return self.role == GlobalRole.ADMIN

    def touch(self) -> None:
        self.updated_at = datetime.now(UTC)

    def update_details(
        self,
        full_name: str | None = None,
        phone_number: str | None = None,
        role: GlobalRole | None = None,
        is_active: bool | None = None,
    ) -> None:
        """Update editable fields; None means leave unchanged."""
        if full_name:
            self.full_name = full_name
        if phone_number:
            self.phone_number = phone_number
        if role is not None:
            self.role = role
        if is_active is not None:
            self.is_active = is_active
        self.touch()

    def set_password_hash(self, password_hash: str) -> None:
        if not password_hash:
            raise ValueError("Password hash cannot be empty")
        self.password_hash = password_hash
        self.touch()

    # password reset

    def start_password_reset(self, token: str, now: datetime | None = None) -> None:
        now = now or datetime.now(UTC)
        self.reset_token = token
        self.reset_token_expires_at = now + RESET_TOKEN_LIFETIME
        self.touch()

    def reset_token_matches(self, token: str, now: datetime | None = None) -> bool:
        """Check the token is ours and has not expired."""
        if not self.reset_token or not self.reset_token_expires_at or not token:
            return False
        now = now or datetime.now(UTC)
        if now >= self.reset_token_expires_at:
            return False
        return secrets.compare_digest(self.reset_token.encode(), token.encode())

    def clear_password_reset(self) -> None:
        self.reset_token = None
        self.reset_token_expires_at = None

    # two-factor credential

    @property
    def has_two_factor_secret(self) -> bool:
        return bool(self.totp_secret_encrypted)

    @property
    def needs_two_factor_setup(self) -> bool:
        return not self.has_two_factor_secret or not self.two_factor_setup_completed

    def set_two_factor_credential(self, totp_secret_encrypted: str, backup_codes: list[str]) -> None:
        """Attach a new credential. Existing credentials are never replaced here."""
        if self.has_two_factor_secret:
            raise ValueError("User already has a two-factor secret")
        self.totp_secret_encrypted = totp_secret_encrypted
        self.backup_codes = list(backup_codes)
        self.two_factor_setup_completed = False
        self.touch()

    def replace_backup_codes(self, backup_codes: list[str]) -> None:
        self.backup_codes = list(backup_codes)
        self.touch()

    def consume_backup_code(self, candidate: str) -> bool:
        """Use up a backup code. The list is reassigned so the ORM sees the change."""
        codes = list(self.backup_codes)
        if not verify_backup_code(codes, candidate):
            return False
        self.backup_codes = codes
        self.touch()
        return True

    def mark_two_factor_setup_completed(self) -> None:
        self.two_factor_setup_completed = True
        self.touch()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):  # pragma: no cover
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def create_detached_copy(self) -> "User":
        """Create a detached copy of this user for use outside SQLAlchemy sessions"""
        return User(
            email=self.email,
            password_hash=self.password_hash,
            full_name=self.full_name,
            phone_number=self.phone_number,
            role=self.role,
            user_id=self.id,
            is_active=self.is_active,
            created_by=self.created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
            reset_token=self.reset_token,
            reset_token_expires_at=self.reset_token_expires_at,
            totp_secret_encrypted=self.totp_secret_encrypted,
            backup_codes=self.backup_codes,
            two_factor_setup_completed=self.two_factor_setup_completed,
            version=self.version,
        )
