"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, minimal logic). Stores and the
service do the work; these classes only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import NamedTuple


@dataclass
class Credential:
    """An identity record: who the user is and how they prove it.

    username and email are each unique across all credentials. email is
    stored lowercased; username is stored trimmed but case-preserved.

    password_hash is excluded from repr() so a stray log line or traceback
    cannot leak it. Anything handed to callers outside the store/service
    boundary goes through redacted() first.
    """

    username: str
    email: str
    password_hash: str = field(default="", repr=False)
    first_name: str = ""
    last_name: str = ""
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def redacted(self) -> Credential:
        """Return a copy with the password hash blanked out."""
        return replace(self, password_hash="")


@dataclass(frozen=True)
class Claims:
    """Decoded payload of a verified token.

    Only TokenManager.validate() constructs these, and only after the
    signature has been checked. Timestamps are integer epoch seconds.
    """

    user_id: int
    username: str
    email: str
    token_id: str  # jti -- the revocation key
    issued_at: int
    not_before: int
    expires_at: int
    issuer: str


class LoginResult(NamedTuple):
    """Successful login: the bearer token and the (redacted) credential."""

    token: str
    credential: Credential
