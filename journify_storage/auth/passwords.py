"""
Password hashing with bcrypt.

bcrypt only reads the first 72 bytes of its input, so passwords are
first reduced to a base64 SHA-256 digest (44 bytes) and the digest is
hashed.
"""

import base64
import hashlib

import bcrypt


def _prehash(password: str) -> bytes:
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with a fresh salt."""
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored hash; malformed hashes never match."""
    if not password_hash or not isinstance(password, str):
        return False
    try:
        return bcrypt.checkpw(_prehash(password), password_hash.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        return False
