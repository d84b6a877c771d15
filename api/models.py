"""
API request and response models for NoteAuth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
notes/models.py, which own the internal domain representation. Route handlers
map between the two.

Credential format rules (email shape, password policy) are enforced by
AuthService, not here, so the same rules apply to every caller. These models
only bound sizes and strip whitespace from emails and note fields.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from notes.models import Note

# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /auth/register and POST /auth/login."""

    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    # Not stripped: whitespace is part of the secret. 72 characters is a coarse
    # cap; AuthService enforces bcrypt's 72-byte limit.
    password: str = Field(min_length=1, max_length=72, json_schema_extra={"format": "password"})


class RefreshRequest(BaseModel):
    """Request body for POST /auth/refresh."""

    refresh_token: str = Field(min_length=1, max_length=4096)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # access token lifetime, seconds


class UserResponse(BaseModel):
    """Public view of a user. hashed_password is never part of it."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    created_at: str = ""


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class NoteRequest(BaseModel):
    """Request body for POST /notes.

    id is optional: omit it to create a note, pass an existing id you own to
    update that note in place.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = Field(default=None, min_length=1, max_length=32)
    title: str = Field(min_length=1, max_length=255, description="Title cannot be blank.")
    content: str = Field(default="", max_length=100_000)
    color: int = 0


class NoteResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    color: int
    created_at: str

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        return cls(
            id=note.id,
            title=note.title,
            content=note.content,
            color=note.color,
            created_at=note.created_at,
        )


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
