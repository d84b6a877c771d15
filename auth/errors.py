"""
auth/errors.py -- Error taxonomy for the credential and token lifecycle.

Every class carries a stable machine-readable ``code`` that the HTTP layer
copies into the error envelope, and a ``status_code`` it uses for the
response. Stores and AuthService raise these unchanged; only api/main.py
translates them into HTTP responses.

StoreUnavailableError is deliberately NOT an authentication verdict: it
means the backing store timed out or could not be reached, and callers may
retry the request.

Layer rule: no imports from api/ or notes/.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    """Base class for every error raised by auth/ and notes/."""

    code: str = "auth_error"
    status_code: int = 400
    default_message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthServiceError):
    """Malformed input (bad email, weak password). The caller fixes and retries."""

    code = "validation_error"
    status_code = 422
    default_message = "Request validation failed."


class AuthenticationError(AuthServiceError):
    """Credentials did not match an account.

    The message is always the same generic text -- never reveal whether the
    email exists or the password was wrong.
    """

    code = "bad_credentials"
    status_code = 401
    default_message = "Invalid credentials."


class InvalidTokenError(AuthServiceError):
    """A token failed signature/expiry/kind checks, or was already consumed."""

    code = "invalid_token"
    status_code = 401
    default_message = "Invalid refresh token."


class ConflictError(AuthServiceError):
    """A unique key (e.g. email) already exists."""

    code = "conflict"
    status_code = 409
    default_message = "A user with that email already exists."


class NotFoundError(AuthServiceError):
    code = "not_found"
    status_code = 404
    default_message = "Resource not found."


class StoreUnavailableError(AuthServiceError):
    """The backing store timed out or is unreachable. Retryable."""

    code = "store_unavailable"
    status_code = 503
    default_message = "Storage is temporarily unavailable. Retry shortly."
