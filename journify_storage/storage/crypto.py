"""
Symmetric encryption of stored values.

Values are encrypted with Fernet (AES-128-CBC + HMAC-SHA256). Key
material may be any secret string; it is stretched to a Fernet key with
SHA-256. Without a configured secret, file stores keep a generated
secret in a private key file next to their data. The same helper keeps
the token signing secret.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from .codec import CodecError
from .file_ops import read_text, write_text_atomic

logger = logging.getLogger(__name__)

KEY_FILE_NAME = ".storage-key"


def derive_key(secret: str) -> bytes:
    """Stretch a secret string into a Fernet key."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class ValueCipher:
    """Encrypts and decrypts payload strings."""

    def __init__(self, secret: str) -> None:
        self._fernet = Fernet(derive_key(secret))

    @classmethod
    def ephemeral(cls) -> ValueCipher:
        """Cipher with a random secret that dies with the process."""
        return cls(secrets.token_urlsafe(32))

    def encrypt(self, text: str) -> str:
        return self._fernet.encrypt(text.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Decrypt a payload.

        Raises:
            CodecError: If the payload was not produced with this key
        """
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError) as e:
            raise CodecError("Encrypted payload could not be decrypted") from e


async def load_or_create_secret(directory: Path, file_name: str = KEY_FILE_NAME) -> str:
    """Read a secret file in ``directory``, creating it on first use.

    The file is written with owner-only permissions.
    """
    path = directory / file_name
    existing = await read_text(path)
    if existing and existing.strip():
        return existing.strip()

    secret = secrets.token_urlsafe(32)
    await write_text_atomic(path, secret, mode=0o600)
    logger.info(f"Created secret file at {path}")
    return secret
