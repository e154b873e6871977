"""
Signed session tokens.

Tokens have the familiar three-segment shape ``header.payload.signature``
with base64url segments. The signature is HMAC-SHA256 over
``header.payload`` keyed with the configured token secret, so a token is
only valid if it was issued by a manager holding the same secret and its
``exp`` claim lies in the future.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets

from ..utils import Clock
from .types import TokenClaims, TokenPair, User

logger = logging.getLogger(__name__)

_HEADER = {"alg": "HS256", "typ": "JWT"}

TOKEN_SECRET_FILE_NAME = ".token-secret"


def _base64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _base64url_decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


class TokenService:
    """Issues and verifies auth and refresh tokens.

    Args:
        secret: HMAC key (None = random per instance, so tokens die with it)
        clock: Source of "now"
        auth_ttl_seconds: Auth token lifetime
        refresh_ttl_seconds: Refresh token lifetime
    """

    def __init__(
        self,
        secret: str | None = None,
        clock: Clock | None = None,
        auth_ttl_seconds: int = 60 * 60,
        refresh_ttl_seconds: int = 7 * 24 * 60 * 60,
    ) -> None:
        if secret is None:
            logger.debug("No token secret configured; tokens will not outlive this process")
            secret = secrets.token_urlsafe(32)
        self._key = secret.encode("utf-8")
        self.clock = clock or Clock()
        self.auth_ttl_seconds = auth_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds

    def _sign(self, signing_input: str) -> str:
        digest = hmac.new(self._key, signing_input.encode("ascii"), hashlib.sha256).digest()
        return _base64url_encode(digest)

    def encode(self, claims: TokenClaims) -> str:
        header = _base64url_encode(json.dumps(_HEADER, separators=(",", ":")).encode())
        payload = _base64url_encode(json.dumps(claims.to_dict(), separators=(",", ":")).encode())
        signing_input = f"{header}.{payload}"
        return f"{signing_input}.{self._sign(signing_input)}"

    def issue(self, user: User, token_type: str | None = None) -> str:
        """Issue one token for a user.

        Args:
            user: Token subject
            token_type: None for an auth token, "refresh" for a refresh token
        """
        now = int(self.clock.time())
        if token_type == "refresh":
            claims = TokenClaims(
                sub=user.id,
                iat=now,
                exp=now + self.refresh_ttl_seconds,
                type="refresh",
                jti=secrets.token_hex(8),
            )
        else:
            claims = TokenClaims(
                sub=user.id,
                iat=now,
                exp=now + self.auth_ttl_seconds,
                email=user.email,
                jti=secrets.token_hex(8),
            )
        return self.encode(claims)

    def issue_pair(self, user: User) -> TokenPair:
        return TokenPair(auth_token=self.issue(user), refresh_token=self.issue(user, "refresh"))

    def decode(self, token: str | None) -> TokenClaims | None:
        """Verify the signature and return the claims.

        Expiry is not checked here.

        Returns:
            Claims, or None for malformed or forged tokens
        """
        if not token or not isinstance(token, str) or not token.isascii():
            return None

        parts = token.split(".")
        if len(parts) != 3:
            return None

        header, payload, signature = parts
        expected = self._sign(f"{header}.{payload}")
        if not hmac.compare_digest(signature, expected):
            return None

        try:
            return TokenClaims.from_dict(json.loads(_base64url_decode(payload)))
        except (binascii.Error, ValueError, KeyError, TypeError):
            return None

    def is_valid(self, token: str | None) -> bool:
        """True iff the signature verifies and ``exp`` is in the future."""
        claims = self.decode(token)
        return claims is not None and claims.exp > self.clock.time()

    def seconds_until_expiry(self, token: str | None) -> float | None:
        """Remaining lifetime, negative when expired, None when undecodable."""
        claims = self.decode(token)
        if claims is None:
            return None
        return claims.exp - self.clock.time()
