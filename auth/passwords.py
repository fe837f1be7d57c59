"""
auth/passwords.py -- Salted one-way password hashing (bcrypt).

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

hash() may raise HashingError; verify() never raises. Verification sits on
the login hot path and must degrade to "deny" rather than propagate.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import HashingError

logger = logging.getLogger("voidrunner.auth")

DEFAULT_ROUNDS = 12

# bcrypt only ever reads the first 72 bytes of its input. Releases from 5.0 on
# raise ValueError instead of truncating, so the cut is made explicitly here to
# keep long passwords hashable and verifiable.
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """bcrypt hasher with a fixed cost factor.

    Usage:
        hasher = PasswordHasher()
        digest = hasher.hash("secret")
        hasher.verify("secret", digest)  # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest embedding a fresh random salt."""
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            return bcrypt.hashpw(_encode(plain), salt).decode("utf-8")
        except (ValueError, TypeError) as exc:
            logger.exception("bcrypt hashing failed")
            raise HashingError() from exc

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt digest."""
        if not plain or not hashed:
            return False
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            # Malformed digest (wrong prefix, bad salt, truncated).
            return False
