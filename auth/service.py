"""
auth/service.py -- Credential and token lifecycle: register, login, refresh.

AuthService is the only component with business logic. It owns no state of
its own; it coordinates UserStore and RefreshTokenStore with the stateless
PasswordHasher and TokenSigner.

Refresh-token lifecycle per token instance:

    issued --(redeemed once)--> consumed
       \\----(expires_at passes)--> expired

There is no way back from consumed or expired. refresh() enforces this by
handing out the new pair only when deleting the stored digest actually
removed a row. The delete and the insert of the replacement share one
transaction.

Layer rule: no imports from api/ or notes/.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone

from auth.errors import AuthenticationError, InvalidTokenError, ValidationError
from auth.models import RefreshToken, TokenPair, User
from auth.store import RefreshTokenRepository, UserRepository
from auth.tokens import PasswordHasher, TokenSigner, hash_token

logger = logging.getLogger("noteauth.auth")

# Deliberately loose -- deliverability is not our problem, shape is.
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PASSWORD_MIN_LENGTH = 8
_PASSWORD_MAX_BYTES = 72  # bcrypt input limit, in UTF-8 bytes


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        refresh_tokens: RefreshTokenRepository,
        hasher: PasswordHasher | None = None,
        signer: TokenSigner | None = None,
    ) -> None:
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.hasher = hasher or PasswordHasher()
        self.signer = signer or TokenSigner()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, email: str, password: str) -> User:
        """Create an account. The raw password is hashed before it reaches the store.

        Raises:
            ValidationError: malformed email or password below policy.
            ConflictError:   the email is already registered (from the store).
        """
        _validate_email(email)
        _validate_password(password)
        user = self.users.create_user(User(email=email, hashed_password=self.hasher.encode(password)))
        logger.info("Registered user %s", user.id)
        return user

    def login(self, email: str, password: str) -> TokenPair:
        """Verify credentials and issue a new token pair.

        Unknown email and wrong password raise the same AuthenticationError
        after the same amount of bcrypt work, so neither the message nor the
        response time tells an attacker which check failed.
        """
        user = self.users.get_by_email(email)
        if user is None:
            self.hasher.dummy_check(password)
            logger.info("Login rejected: invalid credentials")
            raise AuthenticationError()
        if not self.hasher.matches(password, user.hashed_password):
            logger.info("Login rejected: invalid credentials")
            raise AuthenticationError()

        pair = self._issue_pair(user.id)
        logger.info("Login succeeded for user %s", user.id)
        return pair

    def refresh(self, raw_refresh_token: str) -> TokenPair:
        """Redeem a refresh token exactly once and rotate it.

        Raises InvalidTokenError when the token fails signature, expiry or
        kind checks, belongs to an unknown user, is not on record, or was
        already redeemed (including by a concurrent call).

        Raises StoreUnavailableError if the rotation cannot be written. The
        presented token is then still valid and the call can be retried.
        """
        if not self.signer.validate_refresh_token(raw_refresh_token):
            raise InvalidTokenError()
        user_id = self.signer.get_user_id_from_token(raw_refresh_token)

        # A token for a deleted user is indistinguishable from a forged one.
        user = self.users.get_by_id(user_id)
        if user is None:
            raise InvalidTokenError()

        hashed = hash_token(raw_refresh_token)
        if self.refresh_tokens.find_by_user_id_and_hashed_token(user.id, hashed) is None:
            logger.warning("Refresh rejected for user %s: token not recognized", user.id)
            raise InvalidTokenError("Refresh token not recognized (may be used or expired).")

        # Single-use gate: only the caller whose delete removed the row gets the
        # new pair. Delete and insert commit together or not at all.
        pair = self._mint_pair(user.id)
        if not self.refresh_tokens.rotate(user.id, hashed, self._refresh_record(user.id, pair.refresh_token)):
            logger.warning("Refresh rejected for user %s: token consumed concurrently", user.id)
            raise InvalidTokenError("Refresh token not recognized (may be used or expired).")

        logger.info("Rotated refresh token for user %s", user.id)
        return pair

    def authenticate_access_token(self, token: str) -> str:
        """Return the user id carried by a valid access token."""
        if not self.signer.validate_access_token(token):
            raise InvalidTokenError("Invalid access token.")
        return self.signer.get_user_id_from_token(token)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue_pair(self, user_id: str) -> TokenPair:
        pair = self._mint_pair(user_id)
        self.refresh_tokens.save(self._refresh_record(user_id, pair.refresh_token))
        return pair

    def _mint_pair(self, user_id: str) -> TokenPair:
        return TokenPair(
            access_token=self.signer.generate_access_token(user_id),
            refresh_token=self.signer.generate_refresh_token(user_id),
        )

    def _refresh_record(self, user_id: str, raw_refresh_token: str) -> RefreshToken:
        now = datetime.now(timezone.utc)
        return RefreshToken(
            user_id=user_id,
            hashed_token=hash_token(raw_refresh_token),
            expires_at=now + timedelta(milliseconds=self.signer.refresh_token_validity_ms),
            created_at=now,
        )


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def _validate_email(email: str) -> None:
    if not email or len(email) > 255 or not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email format.")


def _validate_password(password: str) -> None:
    """Minimum 8 characters with at least one lowercase, one uppercase and one digit.

    The upper bound is measured in UTF-8 bytes, since that is what bcrypt limits.
    """
    if (
        len(password) < _PASSWORD_MIN_LENGTH
        or len(password.encode("utf-8")) > _PASSWORD_MAX_BYTES
        or not re.search(r"[a-z]", password)
        or not re.search(r"[A-Z]", password)
        or not re.search(r"\d", password)
    ):
        raise ValidationError(
            "Password must be at least 8 characters long, at most 72 bytes, and contain "
            "at least one uppercase letter, one lowercase letter, and one number."
        )
