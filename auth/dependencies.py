"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one auth method exists: an access token in the
Authorization: Bearer <token> header. Refresh tokens are rejected here by
the type claim check in AuthService.authenticate_access_token().

The resolved user id is returned to the route as a plain argument and passed
explicitly down the call chain (e.g. NoteStore.list_by_owner(user_id)).
Nothing is stashed in request-global or thread-local state.

Layer rule: no imports from api/ or notes/.
  auth/dependencies.py may import from fastapi (for Request/HTTPException)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import InvalidTokenError
from auth.models import User
from auth.service import AuthService


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_user_id(request: Request) -> str:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user_id: str = Depends(get_current_user_id)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    auth_service: AuthService = request.app.state.auth_service
    try:
        return auth_service.authenticate_access_token(token)
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        ) from exc


def get_current_user(request: Request) -> User:
    """Like get_current_user_id(), but also requires the account to still exist."""
    user_id = get_current_user_id(request)
    user = request.app.state.user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
