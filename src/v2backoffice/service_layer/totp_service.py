"""ABOUTME: TOTP service for two-factor authentication core functions
ABOUTME: Handles TOTP secret generation, encryption, provisioning URIs, QR codes, and code verification"""

import base64
import io
import uuid
from datetime import datetime
from urllib.parse import quote, urlsplit

import pyotp
import qrcode
from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from v2backoffice.config import get_totp_encryption_key

# 32 base32 characters carry 160 bits
SECRET_LENGTH = 32
TOTP_DIGITS = 6
TOTP_PERIOD_SECONDS = 30
# Accept codes up to 3 steps (90 seconds) either side of now. Phones drift and
# users are slow to type, so this is wider than the usual single step.
DEFAULT_VALID_WINDOW = 3


class ProvisioningURIError(ValueError):
    """The provisioning URI would not carry the secret unchanged."""


def derive_user_encryption_key(master_key: bytes, user_id: uuid.UUID) -> bytes:
    """Derive a user-specific encryption key from the master key using HKDF.

    This ensures each user has a different encryption key even with the same master key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"v2backoffice-totp-encryption",
        info=user_id.bytes,
    )
    return hkdf.derive(master_key)


def _user_fernet(user_id: uuid.UUID) -> Fernet:
    user_key = derive_user_encryption_key(get_totp_encryption_key(), user_id)
    # Fernet requires a base64-encoded 32-byte key
    return Fernet(base64.urlsafe_b64encode(user_key))


def generate_totp_secret() -> str:
    """Generate a new random TOTP secret (base32 encoded)."""
    return pyotp.random_base32(length=SECRET_LENGTH)


def encrypt_totp_secret(secret: str, user_id: uuid.UUID) -> str:
    """Encrypt TOTP secret for storage using Fernet symmetric encryption.

    Args:
        secret: The plaintext TOTP secret
        user_id: The user's UUID for key derivation

    Returns:
        Base64-encoded encrypted secret
    """
    return _user_fernet(user_id).encrypt(secret.encode("utf-8")).decode("ascii")


def decrypt_totp_secret(encrypted_secret: str, user_id: uuid.UUID) -> str:
    """Decrypt TOTP secret from storage.

    Raises cryptography.fernet.InvalidToken when the ciphertext was not made
    for this user with the current master key.
    """
    return _user_fernet(user_id).decrypt(encrypted_secret.encode("ascii")).decode("utf-8")


def build_provisioning_uri(secret: str, identity: str, issuer: str) -> str:
    """Build the otpauth URI an authenticator app imports.

    The label and issuer are percent-encoded, the secret is embedded as is.
    Raises ProvisioningURIError if the secret would not read back unchanged.
    """
    uri = (
        f"otpauth://totp/{quote(identity, safe='')}"
        f"?secret={secret}"
        f"&issuer={quote(issuer, safe='')}"
        f"&algorithm=SHA1&digits={TOTP_DIGITS}&period={TOTP_PERIOD_SECONDS}"
    )
    if secret_from_provisioning_uri(uri) != secret:
        raise ProvisioningURIError("TOTP secret cannot be embedded in a provisioning URI unchanged")
    return uri


def secret_from_provisioning_uri(uri: str) -> str:
    """Read the secret field back out of a provisioning URI, exactly as written."""
    query = urlsplit(uri).query
    # the raw field, before any percent-decoding, is what the app will see
    for field in query.split("&"):
        name, _, value = field.partition("=")
        if name == "secret":
            return value
    return ""


def generate_qr_code_data_url(provisioning_uri: str) -> str:
    """Render the provisioning URI as a PNG QR code data URL.

    Returns:
        Data URL string (data:image/png;base64,...)
    """
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(provisioning_uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer)
    buffer.seek(0)
    img_base64 = base64.b64encode(buffer.getvalue()).decode("ascii")

    return f"data:image/png;base64,{img_base64}"


def verify_totp_code(
    secret: str,
    code: str,
    valid_window: int = DEFAULT_VALID_WINDOW,
    for_time: datetime | int | None = None,
) -> bool:
    """Verify a 6 digit TOTP code against a secret.

    A code is accepted when it matches any time step within `valid_window`
    steps of `for_time` (defaults to now).
    """
    code = code.strip().replace(" ", "")
    if len(code) != TOTP_DIGITS or not code.isdigit():
        return False
    totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD_SECONDS)
    if for_time is None:
        return totp.verify(code, valid_window=valid_window)
    return totp.verify(code, for_time=for_time, valid_window=valid_window)
