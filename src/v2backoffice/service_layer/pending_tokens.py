"""ABOUTME: Short-lived pending two-factor token handed out between the password and TOTP steps
ABOUTME: Fernet-signed and timestamped so it cannot be forged or replayed after it expires"""

import base64
import json
import time
import uuid
from datetime import datetime

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from v2backoffice.service_layer.exceptions import InvalidPendingToken

PENDING_TOKEN_TYPE = "2fa"
DEFAULT_PENDING_TOKEN_MINUTES = 15


def _pending_token_fernet(secret_key: str) -> Fernet:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"v2backoffice-pending-2fa",
        info=b"pending-two-factor-token",
    )
    return Fernet(base64.urlsafe_b64encode(hkdf.derive(secret_key.encode("utf-8"))))


def _epoch_seconds(now: datetime | None) -> int:
    return int(now.timestamp()) if now is not None else int(time.time())


def issue_pending_token(user_id: uuid.UUID, secret_key: str, now: datetime | None = None) -> str:
    """Mint the token that proves the password step passed for `user_id`.

    The issue time is carried inside the Fernet envelope, which is also what
    expiry is checked against.
    """
    payload = json.dumps({"user_id": str(user_id), "type": PENDING_TOKEN_TYPE}).encode("utf-8")
    return _pending_token_fernet(secret_key).encrypt_at_time(payload, _epoch_seconds(now)).decode("ascii")


def resolve_pending_token(
    token: str,
    secret_key: str,
    now: datetime | None = None,
    max_age_minutes: int = DEFAULT_PENDING_TOKEN_MINUTES,
) -> uuid.UUID:
    """Return the user id inside a pending token.

    Raises InvalidPendingToken for anything that is not a well formed token
    of the right type, issued with our key, no more than `max_age_minutes` ago.
    """
    if not token:
        raise InvalidPendingToken()
    try:
        payload = _pending_token_fernet(secret_key).decrypt_at_time(
            token.encode("ascii"),
            ttl=max_age_minutes * 60,
            current_time=_epoch_seconds(now),
        )
        data = json.loads(payload)
    except (InvalidToken, UnicodeEncodeError, ValueError) as error:
        raise InvalidPendingToken() from error
    if not isinstance(data, dict) or data.get("type") != PENDING_TOKEN_TYPE:
        raise InvalidPendingToken()
    try:
        return uuid.UUID(str(data.get("user_id")))
    except ValueError as error:
        raise InvalidPendingToken() from error
