"""
auth/dependencies.py -- FastAPI Depends() helpers.

get_auth_service() hands route handlers the AuthService built once in the
lifespan; get_request_context() gives each request its own deadline.

get_current_user() accepts an `Authorization: Bearer <access token>` header,
verifies it with the issuer stored on app.state, and resolves the token
subject to a User. try_get_current_user() is the soft variant (returns None on
failure).

Unlike AuthService, these helpers rely on the concrete adapters built in the
lifespan, not only on the auth/ports.py protocols: JwtTokenIssuer.decode_token()
(the same verification validate_token() runs, but returning the claims) and
SqlCredentialStore.get_user_by_id().

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.context import RequestContext
from auth.errors import StoreError
from auth.models import User
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_request_context(request: Request) -> RequestContext:
    """Return a fresh RequestContext bounded by the configured request timeout."""
    return RequestContext.with_timeout(request.app.state.settings.request_timeout_seconds)


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def try_get_current_user(request: Request) -> User | None:
    """Authenticate the request via its Bearer access token.

    Returns the User on success, None on any failure. Never raises.
    The token is decoded once; decode_token() rejects expired, forged and
    refresh-typed tokens.
    """
    token = _bearer_token(request)
    if token is None:
        return None

    payload = request.app.state.token_issuer.decode_token(token)
    if payload is None:
        return None

    try:
        return request.app.state.credential_store.get_user_by_id(payload["sub"])
    except StoreError:
        return None


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
