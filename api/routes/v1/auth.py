"""
api/routes/v1/auth.py -- Registration, login, token refresh and identity.

Routes:
  POST /api/v1/auth/register  -- create an account; 201
  POST /api/v1/auth/login     -- password login; returns a token pair
  POST /api/v1/auth/refresh   -- redeem a refresh token once; returns a new pair
  GET  /api/v1/auth/me        -- current user info (requires access token)

Handlers are plain `def`, not `async def`: FastAPI runs them in its
threadpool, so bcrypt work in register/login never blocks the event loop.

AuthService errors (ValidationError, AuthenticationError, InvalidTokenError,
ConflictError, StoreUnavailableError) propagate out of the handlers
unchanged. api/main.py maps them to status codes and the shared error
envelope.

Security:
  Cache-Control: no-store on every response that carries tokens.
  login returns the same "bad_credentials" error for unknown email and wrong
  password.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import CredentialsRequest, RefreshRequest, TokenPairResponse, UserResponse
from auth.dependencies import get_current_user
from auth.models import TokenPair, User
from auth.service import AuthService

router = APIRouter()


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: CredentialsRequest) -> UserResponse:
    """Create an account. Returns the new user's public view, never the hash."""
    auth_service: AuthService = request.app.state.auth_service
    user = auth_service.register(body.email, body.password)
    return _user_to_response(user)


@router.post("/auth/login", response_model=TokenPairResponse)
def login(request: Request, body: CredentialsRequest) -> JSONResponse:
    auth_service: AuthService = request.app.state.auth_service
    pair = auth_service.login(body.email, body.password)
    return _token_response(auth_service, pair)


@router.post("/auth/refresh", response_model=TokenPairResponse)
def refresh(request: Request, body: RefreshRequest) -> JSONResponse:
    """Exchange a refresh token for a new pair. The presented token is consumed."""
    auth_service: AuthService = request.app.state.auth_service
    pair = auth_service.refresh(body.refresh_token)
    return _token_response(auth_service, pair)


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return _user_to_response(current_user)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _token_response(auth_service: AuthService, pair: TokenPair) -> JSONResponse:
    resp = JSONResponse(
        status_code=200,
        content=TokenPairResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=auth_service.signer.access_token_validity_ms // 1000,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, created_at=user.created_at or "")
