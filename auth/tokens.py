"""
auth/tokens.py -- Bearer token issuance, validation, and revocation.

Security design decisions:
  JWT: python-jose, HMAC-SHA256. Tokens carry user_id, username, email, a
       unique jti, iat/nbf/exp and a fixed issuer. decode() is pinned to the
       HMAC family, so "alg": "none" and asymmetric-algorithm substitution are
       rejected before any claim is read.

  Validation order:
       1. structure / signature / algorithm / issuer / claim types -> InvalidTokenError
       2. past exp                                                  -> ExpiredTokenError
       3. jti in the revocation set                                 -> InvalidTokenError
       A revoked token is indistinguishable from a forged one to the caller.

  Time: jose's own exp/nbf checks read the wall clock, so they are disabled
       and done here against the injected clock. Tests pass a fake clock.

  Revocation set: owned by one TokenManager instance (built in the app
       lifespan and injected), guarded by a reader-preferring lock. Every
       protected request validates (read); only logout and the sweeper write.
       Entries remember their token's exp so purge_expired() can drop them
       once the token would fail on expiry anyway.

Layer rule: no imports from api/ or core/. The secret and expiry are passed in.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from jose import jwt
from jose.exceptions import JOSEError

from auth.errors import ExpiredTokenError, InvalidTokenError, RevocationError, SigningError
from auth.models import Claims

logger = logging.getLogger("voidrunner.auth")

ISSUER = "voidrunner"

_ALGORITHM = "HS256"
_ALLOWED_ALGORITHMS = ["HS256", "HS384", "HS512"]

# jose checks signature, issuer and claim types; time is checked by us.
_DECODE_OPTIONS = {
    "verify_exp": False,
    "verify_nbf": False,
    "verify_aud": False,
}


class _ReadWriteLock:
    """Reader-preferring lock: readers share, a writer waits for zero readers.

    Readers only touch the condition long enough to bump the counter, so
    concurrent validations never wait on one another. A writer holds the
    condition for the whole critical section, which keeps new readers out.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._readers:
                self._cond.wait()
            yield


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _claims_from_payload(payload: dict) -> Claims:
    """Map a signature-verified payload to Claims, rejecting bad shapes."""
    user_id = payload.get("user_id")
    username = payload.get("username")
    email = payload.get("email")
    jti = payload.get("jti")
    iat = payload.get("iat")
    nbf = payload.get("nbf")
    exp = payload.get("exp")
    iss = payload.get("iss")

    if not _is_int(user_id) or not all(_is_int(v) for v in (iat, nbf, exp)):
        raise InvalidTokenError()
    if not all(isinstance(v, str) for v in (username, email, iss)):
        raise InvalidTokenError()
    if not isinstance(jti, str) or not jti:
        raise InvalidTokenError()

    return Claims(
        user_id=user_id,
        username=username,
        email=email,
        token_id=jti,
        issued_at=iat,
        not_before=nbf,
        expires_at=exp,
        issuer=iss,
    )


class TokenManager:
    """Issues, validates and revokes signed bearer tokens.

    Usage:
        tokens = TokenManager(secret=settings.jwt_secret, expire_seconds=3600)
        token = tokens.issue(1, "alice", "alice@example.com")
        claims = tokens.validate(token)
        tokens.revoke(token)
    """

    def __init__(
        self,
        secret: str | bytes,
        expire_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("TokenManager requires a non-empty secret.")
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive.")
        self._secret: bytes = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        self.expire_seconds = expire_seconds
        self._clock = clock
        self._lock = _ReadWriteLock()
        self._revoked: dict[str, int] = {}  # jti -> exp

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, user_id: int, username: str, email: str) -> str:
        """Encode a signed token for the given identity."""
        now = int(self._clock())
        jti = f"{user_id}_{secrets.token_hex(16)}"
        payload = {
            "sub": str(user_id),
            "user_id": user_id,
            "username": username,
            "email": email,
            "jti": jti,
            "iat": now,
            "nbf": now,
            "exp": now + self.expire_seconds,
            "iss": ISSUER,
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)
        except JOSEError as exc:
            logger.exception("Token signing failed for user_id=%s", user_id)
            raise SigningError() from exc

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    def _decode(self, token: str) -> Claims:
        """Verify signature, algorithm and issuer; return typed claims.

        Does not look at exp or the revocation set.
        """
        if not token or not isinstance(token, str):
            raise InvalidTokenError()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=_ALLOWED_ALGORITHMS,
                issuer=ISSUER,
                options=_DECODE_OPTIONS,
            )
        except (JOSEError, ValueError) as exc:
            raise InvalidTokenError() from exc
        return _claims_from_payload(payload)

    def validate(self, token: str) -> Claims:
        """Return the token's claims or raise InvalidTokenError / ExpiredTokenError."""
        claims = self._decode(token)
        now = self._clock()
        if now < claims.not_before:
            raise InvalidTokenError()
        if now > claims.expires_at:
            raise ExpiredTokenError()
        if self.is_revoked(claims.token_id):
            raise InvalidTokenError()
        return claims

    # ------------------------------------------------------------------
    # Revoke
    # ------------------------------------------------------------------

    def revoke(self, token: str) -> None:
        """Add the token's jti to the revocation set.

        The signature must still verify -- a garbage or forged string raises
        RevocationError. Expiry is ignored: revoking an expired token is a
        harmless no-op, and revoking twice is not an error.
        """
        try:
            claims = self._decode(token)
        except InvalidTokenError as exc:
            raise RevocationError() from exc
        with self._lock.write():
            self._revoked[claims.token_id] = claims.expires_at
        logger.info("Revoked token jti=%s user_id=%s", claims.token_id, claims.user_id)

    def is_revoked(self, token_id: str) -> bool:
        with self._lock.read():
            return token_id in self._revoked

    @property
    def revoked_count(self) -> int:
        with self._lock.read():
            return len(self._revoked)

    def purge_expired(self) -> int:
        """Drop revocation entries whose token has already expired.

        Safe because validate() checks expiry before revocation: a purged
        token still fails, just with ExpiredTokenError. Returns the number of
        entries removed.
        """
        now = self._clock()
        with self._lock.write():
            expired = [jti for jti, exp in self._revoked.items() if now > exp]
            for jti in expired:
                del self._revoked[jti]
        if expired:
            logger.info("Purged %d expired revocation entries", len(expired))
        return len(expired)
