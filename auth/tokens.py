"""
auth/tokens.py -- JWT signing, password hashing, and refresh-token digests.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id), type ("access" or "refresh"), iat, exp and a random
       jti. The type claim keeps the two kinds apart: an access token
       presented to the refresh endpoint fails validation. The jti keeps two
       tokens minted in the same second for the same user distinct, which
       the single-use refresh store depends on.

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt is the right
       choice for low-entropy secrets because its cost factor makes
       brute-force expensive. _DUMMY_HASH enables timing equalization in
       login so response time does not reveal whether an email exists.

  Refresh tokens: SHA-256 digest, base64 encoded. The input is a signed
       high-entropy JWT -- bcrypt's intentional slowness is unnecessary and
       its random salt would make exact-match lookup impossible.

Layer rule: no imports from api/ or notes/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.errors import InvalidTokenError
from core.config import get_settings

logger = logging.getLogger("noteauth.auth")

_ALGORITHM = "HS256"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


class PasswordHasher:
    """Salted, adaptive one-way hash for user passwords.

    Every encode() call draws a fresh salt, so hashing the same password twice
    yields two different strings that both verify.

    bcrypt refuses passwords longer than 72 bytes. AuthService rejects them at
    registration; at login they simply fail to match.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def encode(self, raw_password: str) -> str:
        return bcrypt.hashpw(raw_password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def matches(self, raw_password: str, hashed: str) -> bool:
        """Return True if raw_password matches the bcrypt hash.

        bcrypt.checkpw compares in constant time. A malformed stored hash is a
        plain mismatch, not an error.
        """
        try:
            return bcrypt.checkpw(raw_password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def dummy_check(self, raw_password: str) -> None:
        """Burn one bcrypt comparison against a throwaway hash.

        Call this when the account does not exist so the unknown-email path
        costs the same as the wrong-password path.
        """
        self.matches(raw_password, _DUMMY_HASH)


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = bcrypt.hashpw(b"noteauth_timing_dummy", bcrypt.gensalt()).decode("utf-8")


# ---------------------------------------------------------------------------
# Refresh-token digest
# ---------------------------------------------------------------------------


def hash_token(raw_token: str) -> str:
    """Return base64(SHA-256(raw_token)). Deterministic, so usable as a lookup key."""
    digest = hashlib.sha256(raw_token.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenSigner:
    """Issues and verifies access and refresh JWTs.

    Args:
        secret_key:                Signing key. Defaults to Settings.secret_key.
        access_token_validity_ms:  Access token lifetime in milliseconds.
        refresh_token_validity_ms: Refresh token lifetime in milliseconds.
                                   AuthService reads this attribute to give
                                   the stored record the same expiry the
                                   signed token claims.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        access_token_validity_ms: int | None = None,
        refresh_token_validity_ms: int | None = None,
    ) -> None:
        settings = get_settings()
        self._secret_key = secret_key if secret_key is not None else settings.secret_key
        if not self._secret_key:
            raise ValueError("TokenSigner requires a non-empty secret key.")
        self.access_token_validity_ms = (
            access_token_validity_ms
            if access_token_validity_ms is not None
            else settings.access_token_expire_seconds * 1000
        )
        self.refresh_token_validity_ms = (
            refresh_token_validity_ms
            if refresh_token_validity_ms is not None
            else settings.refresh_token_expire_seconds * 1000
        )

    def generate_access_token(self, subject_id: str) -> str:
        return self._generate(subject_id, ACCESS_TOKEN_TYPE, self.access_token_validity_ms)

    def generate_refresh_token(self, subject_id: str) -> str:
        return self._generate(subject_id, REFRESH_TOKEN_TYPE, self.refresh_token_validity_ms)

    def validate_access_token(self, token: str) -> bool:
        return self._decode(token, ACCESS_TOKEN_TYPE) is not None

    def validate_refresh_token(self, token: str) -> bool:
        return self._decode(token, REFRESH_TOKEN_TYPE) is not None

    def get_user_id_from_token(self, token: str) -> str:
        """Return the subject of a verified token of either kind.

        The signature and expiry are checked first; content of an unverified
        token is never returned.
        """
        payload = self._decode(token)
        if payload is None:
            raise InvalidTokenError("Invalid token.")
        return payload["sub"]

    def _generate(self, subject_id: str, token_type: str, validity_ms: int) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject_id,
            "type": token_type,
            "iat": now,
            "exp": now + timedelta(milliseconds=validity_ms),
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def _decode(self, token: str, expected_type: str | None = None) -> dict | None:
        """Decode and verify a JWT. Returns the payload dict or None on any failure.

        jose checks the signature and the exp claim. On top of that the
        payload must carry a string sub and, when expected_type is given,
        the matching type claim.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if not isinstance(payload.get("sub"), str) or not payload["sub"]:
            return None
        if payload.get("type") not in (ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE):
            return None
        if expected_type is not None and payload["type"] != expected_type:
            return None
        return payload
