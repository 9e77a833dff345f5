"""Encryption-at-rest for integration secrets (TickTick access tokens).

Security notes:
- Access tokens are secrets: store encrypted-at-rest and never log raw values.
- TOKEN_ENCRYPTION_KEY must be a Fernet key (base64 urlsafe 32-byte).
"""

import os

from cryptography.fernet import Fernet, InvalidToken


def _require_fernet() -> Fernet:
    key = os.getenv("TOKEN_ENCRYPTION_KEY", "").strip()
    if not key:
        raise RuntimeError(
            "TOKEN_ENCRYPTION_KEY is not set. "
            "Set it to a Fernet key (base64 urlsafe 32-byte) to enable encrypted token storage."
        )
    return Fernet(key)


def encrypt_secret(raw: str) -> str:
    f = _require_fernet()
    return f.encrypt(raw.encode("utf-8")).decode("utf-8")


def decrypt_secret(enc: str) -> str:
    f = _require_fernet()
    try:
        return f.decrypt(enc.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        raise RuntimeError("Stored token could not be decrypted; TOKEN_ENCRYPTION_KEY may be wrong.") from e
