"""
api/main.py -- FastAPI application entry point for credcore.

Exposes the credential-issuance core (auth/service.py) over HTTP. This module
and api/routes/ are the only code that knows about status codes.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one access-log line per request

Lifespan builds the collaborators (SqlCredentialStore, JwtTokenIssuer,
PasswordHasher) once, injects them into a single AuthService, and parks all of
them on app.state. Shutdown disposes the store's engine.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import (
    AuthError,
    InvalidCredentials,
    InvalidInput,
    OperationCancelled,
    PersistenceFailed,
    TokenIssuanceFailed,
    UserAlreadyExists,
)
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import SqlCredentialStore
from auth.tokens import JwtTokenIssuer
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("credcore.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the collaborators and the AuthService; tear the store down on exit.

    The AuthService is constructed exactly once and never reassigned, so every
    request handler shares the same immutable orchestrator.
    """
    logger.info("credcore API starting up")
    app.state.settings = settings
    app.state.credential_store = SqlCredentialStore(settings.database_url)
    app.state.token_issuer = JwtTokenIssuer.from_settings(settings)
    app.state.auth_service = AuthService(
        app.state.credential_store,
        app.state.token_issuer,
        PasswordHasher(rounds=settings.bcrypt_rounds),
    )
    logger.info("Auth initialized (bcrypt_rounds=%d)", settings.bcrypt_rounds)

    yield

    app.state.credential_store.close()
    logger.info("credcore API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="credcore API",
    description="Email/password login and registration with bearer token issuance.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly. No error payload ever carries token fields.
# ---------------------------------------------------------------------------

_AUTH_ERROR_STATUS: dict[type[AuthError], int] = {
    InvalidInput: 400,
    InvalidCredentials: 401,
    UserAlreadyExists: 409,
    TokenIssuanceFailed: 500,
    PersistenceFailed: 500,
}


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate an AuthError kind into its status code.

    Server-side kinds are logged with their chained cause; the client only
    sees the kind's code and message.
    """
    status_code = _AUTH_ERROR_STATUS.get(type(exc), 500)
    if status_code >= 500:
        logger.error(
            "%s on %s %s (cause: %r)",
            exc.code,
            request.method,
            request.url.path,
            exc.__cause__,
        )
    response = _error_response(status_code, exc.code, exc.message)
    response.headers["Cache-Control"] = "no-store"
    if status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(OperationCancelled)
async def cancelled_handler(request: Request, exc: OperationCancelled) -> JSONResponse:
    logger.warning("Request aborted on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(503, "request_aborted", "The request was aborted before completion.")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when the request body fails validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it -- str(dict) produces a Python repr,
    not JSON.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    response = _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    db_ok = request.app.state.credential_store.ping()
    return HealthResponse(
        status="ok" if db_ok else "degraded",
        version=VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
