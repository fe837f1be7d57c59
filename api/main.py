"""
api/main.py -- FastAPI application entry point for VoidRunner.

Exposes the credential and token core over HTTP. The request gate
(auth.dependencies.get_current_claims) protects everything that needs an
identity; /api/v1/auth/register, /login and /health are public.

Run with:      uvicorn asgi:app --reload
               python main.py --port 8080

Lifespan builds the collaborators exactly once and hangs them on app.state:
  settings -> credential store (memory or postgres, by STORAGE_BACKEND)
           -> TokenManager (owns the revocation set for the process lifetime)
           -> PasswordHasher
           -> AuthService(store, token_manager, hasher)
Nothing in auth/ reads settings or globals; everything is passed in here.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import (
    AlreadyExistsError,
    AuthError,
    CredentialStoreError,
    HashingError,
    InvalidCredentialsError,
    RevocationError,
    SigningError,
    TokenError,
    ValidationError,
)
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import create_credential_store
from auth.tokens import TokenManager
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
logger = logging.getLogger("voidrunner.api")

# ---------------------------------------------------------------------------
# Background revocation sweep
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval_seconds: int) -> None:
    """Drop expired token-ids from the revocation set every interval.

    asyncio.sleep yields to the event loop between sweeps. CancelledError
    from task.cancel() during shutdown propagates out of asyncio.sleep and
    unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        app.state.token_manager.purge_expired()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build collaborators on startup; release them on shutdown.

    Everything before yield runs on startup; everything after yield runs on
    shutdown, even if a request handler raised.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info("VoidRunner API starting up (storage_backend=%s)", settings.storage_backend)

    app.state.settings = settings
    app.state.credential_store = create_credential_store(settings)
    app.state.token_manager = TokenManager(
        secret=settings.jwt_secret,
        expire_seconds=settings.token_expire_seconds,
    )
    app.state.auth_service = AuthService(
        store=app.state.credential_store,
        token_manager=app.state.token_manager,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
    )
    logger.info("Auth initialized (token_expire_seconds=%d)", settings.token_expire_seconds)
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.revocation_purge_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.credential_store.close()
    logger.info("VoidRunner API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="VoidRunner API",
    description="Credential registration, login, and bearer token authority.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Wall-clock time is captured around call_next so every response line carries
# its latency. Tokens and bodies are never logged.
# ---------------------------------------------------------------------------


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
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

# Most specific class first; the first isinstance() match wins.
_AUTH_ERROR_STATUS: list[tuple[type[AuthError], int]] = [
    (ValidationError, 400),
    (AlreadyExistsError, 409),
    (InvalidCredentialsError, 401),
    (TokenError, 401),
    (RevocationError, 400),
    (HashingError, 500),
    (SigningError, 500),
    (CredentialStoreError, 500),
]


def _status_for(exc: AuthError) -> int:
    for cls, status in _AUTH_ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map auth core errors to HTTP statuses.

    Security note: only the error's fixed code and message are returned. The
    chained cause (storage or signing failure text) was logged where it was
    raised and never reaches the response body.
    """
    status = _status_for(exc)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, TokenError) else None
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


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
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the log only, never to the
    response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and the active storage backend."""
    return HealthResponse(version=VERSION, storage_backend=request.app.state.settings.storage_backend)
