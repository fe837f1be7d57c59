"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register  -- create a credential; 201
  POST /api/v1/auth/login     -- username-or-email login; returns bearer token
  POST /api/v1/auth/logout    -- revoke the presented bearer token; 204
  GET  /api/v1/auth/me        -- identity from the verified token (requires auth)

Handlers are plain `def` so Starlette runs them in its thread pool: bcrypt
and HMAC work must not block the event loop.

Errors raised by AuthService (auth.errors.AuthError subclasses) are not
caught here -- api/main.py maps them to status codes in one place.

Security:
  [C1] AuthService.login() equalizes timing between unknown identifiers and
       wrong passwords; both return the same invalid_credentials error.
  [M5] Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.models import CredentialResponse, LoginRequest, LoginResponse, MeResponse, RegisterRequest
from auth.dependencies import bearer_token, get_current_claims
from auth.models import Claims
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   presents the token it revokes; not gated, so an
#                               expired token can still be revoked
# - GET  /api/v1/auth/me:       requires auth (get_current_claims)
router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post("/auth/register", response_model=CredentialResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> CredentialResponse:
    """Register a new identity. Username and email must both be unused."""
    credential = _service(request).register(
        body.username,
        body.email,
        body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return CredentialResponse.from_credential(credential)


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with a username or email plus password; return a bearer token."""
    service = _service(request)
    token, credential = service.login(body.identifier, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=service.token_manager.expire_seconds,
            user=CredentialResponse.from_credential(credential),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout", status_code=204)
def logout(request: Request) -> Response:
    """Revoke the bearer token from the Authorization header.

    A missing header is a validation_error (400); a token that does not
    verify is rejected with 400 as well. Logging out twice succeeds.
    """
    _service(request).logout(bearer_token(request))
    return Response(status_code=204)


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, claims: Claims = Depends(get_current_claims)) -> MeResponse:
    """Return identity information for the currently authenticated caller."""
    credential = _service(request).store.get_by_id(claims.user_id)
    return MeResponse.from_claims(claims, credential.redacted() if credential is not None else None)
