"""
auth/dependencies.py -- FastAPI Depends() helpers: the inbound request gate.

Every protected route depends on get_current_claims(), which reads the
Authorization: Bearer <token> header and runs it through the TokenManager
held on app.state. On success the verified Claims are also stored on
request.state.claims for downstream handlers.

Failure responses distinguish an expired token ("token_expired" -- the
client should log in again) from everything else ("invalid_token" --
discard it). A revoked token is reported as invalid_token.

Layer rule: auth/dependencies.py may import from fastapi because this module
is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import TokenError
from auth.models import Claims
from auth.tokens import TokenManager


def bearer_token(request: Request) -> str:
    """Return the token from an Authorization: Bearer header, or "" if absent/malformed."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer":
        return ""
    return token.strip()


def get_current_claims(request: Request) -> Claims:
    """Require a valid bearer token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: Claims = Depends(get_current_claims)): ...
    """
    token = bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authorization header required."},
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_manager: TokenManager = request.app.state.token_manager
    try:
        claims = token_manager.validate(token)
    except TokenError as exc:
        # ExpiredTokenError and InvalidTokenError both land here; exc.code tells them apart.
        raise HTTPException(
            status_code=401,
            detail={"code": exc.code, "message": exc.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    request.state.claims = claims
    return claims
