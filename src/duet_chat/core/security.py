"""Password hashing and session token helpers."""
from __future__ import annotations

import base64
import hmac
import os
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from jose import JWTError, jwt

from duet_chat.core.settings import settings

Persistence = Literal["local", "session"]

_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1
_SALT_BYTES = 16
_KEY_BYTES = 32


def _kdf(salt: bytes) -> Scrypt:
    return Scrypt(salt=salt, length=_KEY_BYTES, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P)


def hash_password(password: str) -> str:
    """Return an encoded scrypt hash of ``password``.

    The encoding is ``scrypt$<salt b64>$<key b64>``.
    """
    salt = os.urandom(_SALT_BYTES)
    key = _kdf(salt).derive(password.encode("utf-8"))
    return "$".join(
        [
            "scrypt",
            base64.b64encode(salt).decode(),
            base64.b64encode(key).decode(),
        ]
    )


def verify_password(password: str, encoded: str) -> bool:
    """Check ``password`` against a hash produced by :func:`hash_password`."""
    try:
        scheme, salt_b64, key_b64 = encoded.split("$")
    except ValueError:
        return False
    if scheme != "scrypt":
        return False
    salt = base64.b64decode(salt_b64)
    expected = base64.b64decode(key_b64)
    try:
        _kdf(salt).verify(password.encode("utf-8"), expected)
    except InvalidKey:
        return False
    return True


def create_access_token(
    subject: str,
    persistence: Persistence = "local",
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Create a JWT for ``subject``.

    ``local`` tokens survive browser restarts and use the durable lifetime;
    ``session`` tokens use the short one.
    """
    minutes = (
        settings.access_token_expire_minutes
        if persistence == "local"
        else settings.session_token_expire_minutes
    )
    to_encode: dict[str, Any] = {"sub": subject, "persistence": persistence}
    if extra_claims:
        to_encode.update(extra_claims)
    to_encode["exp"] = datetime.now(UTC) + timedelta(minutes=minutes)
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> str | None:
    """Return the subject of a valid token, or None."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) else None


def sign_hmac_sha1(key: str, message: str) -> str:
    """Hex HMAC-SHA1 signature, the scheme ImageKit uses for upload tokens."""
    return hmac.new(key.encode("utf-8"), message.encode("utf-8"), "sha1").hexdigest()
