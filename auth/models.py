"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own the
domain shape; stores and the service do the work.

Layer rule: no imports from api/ or notes/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4


def new_id() -> str:
    return uuid4().hex


@dataclass
class User:
    """A registered identity.

    email is unique and compared case-sensitively, exactly as stored.
    hashed_password is bcrypt output -- the raw password never reaches the
    store.
    """

    email: str
    hashed_password: str
    id: str = field(default_factory=new_id)
    created_at: str | None = None


@dataclass
class RefreshToken:
    """Server-side record of one issued refresh token.

    Security design:
    - hashed_token is SHA-256(raw_token), base64 encoded. A fast deterministic
      digest is enough here: the input is a signed, high-entropy, time-bounded
      JWT, so brute-force resistance buys nothing. Exact-match lookup and
      irreversibility if the table leaks are the only requirements.
    - The raw token is never persisted. It is returned ONCE to the client.
    - The record is deleted the moment the raw token is redeemed; once gone,
      the same (user_id, hashed_token) pair can never authorize a refresh.
    """

    user_id: str
    hashed_token: str
    expires_at: datetime
    created_at: datetime


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh token handed back to the caller. Never persisted."""

    access_token: str
    refresh_token: str
