"""
api/routes/v1/auth.py -- Login, registration and identity REST endpoints.

Routes:
  POST /api/v1/auth/login     -- email/password login; returns a bearer token pair
  POST /api/v1/auth/register  -- create a user; 201 on success
  GET  /api/v1/auth/me        -- current user info (requires Bearer access token)

These handlers are the transport adapter around AuthService: they decode the
body, call the service, and encode the result. They hold no auth logic.
AuthError subclasses raised by the service propagate to the exception handler
in api/main.py, which alone maps each kind to a status code.

An empty body is rejected with 400 before the service is called. Handlers are
plain `def` so FastAPI runs them in its threadpool -- the store and bcrypt
calls behind AuthService are blocking.

Security:
  Cache-Control: no-store on every login response, success or failure.
  Unknown email and wrong password share one response (invalid_credentials).
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.models import (
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
)
from auth.context import RequestContext
from auth.dependencies import get_auth_service, get_current_user, get_request_context
from auth.models import LoginCredentials, User
from auth.service import AuthService

router = APIRouter()


def _empty_body() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(code="empty_body", message="Request body is empty."),
        ).model_dump(),
    )


@router.post("/auth/login", response_model=LoginResponse)
def login(
    request: Request,
    response: Response,
    body: LoginRequest | None = Body(default=None),
    service: AuthService = Depends(get_auth_service),
    ctx: RequestContext = Depends(get_request_context),
):
    """Authenticate with email and password; return access and refresh tokens."""
    response.headers["Cache-Control"] = "no-store"
    if body is None:
        resp = _empty_body()
        resp.headers["Cache-Control"] = "no-store"
        return resp

    result = service.login(LoginCredentials(email=body.email, password=body.password), ctx)
    return LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        token_type=result.token_type,
        expires_in=request.app.state.token_issuer.access_expire_seconds,
    )


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(
    body: RegisterRequest | None = Body(default=None),
    service: AuthService = Depends(get_auth_service),
    ctx: RequestContext = Depends(get_request_context),
):
    """Register a new user. The response carries no user data."""
    if body is None:
        return _empty_body()

    service.register(User(email=body.email, name=body.name), body.password, ctx)
    return RegisterResponse()


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the bearer of the access token."""
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        created_at=current_user.created_at.isoformat() if current_user.created_at else "",
    )
