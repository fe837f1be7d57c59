"""
auth/service.py -- Registration, login and logout orchestration.

AuthService owns no state of its own. Its collaborators -- the credential
store, the password hasher and the token manager -- are injected by the app
lifespan so tests can swap any of them.

Security:
  [C1] login() runs bcrypt whether or not the identifier exists. Unknown
       identifiers are verified against _dummy_hash, so response time does not
       reveal which usernames/emails are registered. Both failure paths raise
       the same InvalidCredentialsError.

  The password hash never leaves this module: register() and login() return
  credential.redacted().

  Password hashing happens before and outside any TokenManager call, so it
  never runs while the revocation lock is held.
"""

from __future__ import annotations

import logging

from auth.errors import AlreadyExistsError, InvalidCredentialsError, ValidationError
from auth.models import Credential, LoginResult
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from auth.tokens import TokenManager

logger = logging.getLogger("voidrunner.auth")


class AuthService:
    """Register, log in and log out identities.

    Usage:
        service = AuthService(store, token_manager, PasswordHasher())
        service.register("alice", "alice@example.com", "pw123")
        token, credential = service.login("alice", "pw123")
        service.logout(token)
    """

    def __init__(self, store: CredentialStore, token_manager: TokenManager, hasher: PasswordHasher) -> None:
        self.store = store
        self.token_manager = token_manager
        self.hasher = hasher
        # Timing equalization digest [C1]. Built with the same cost factor as
        # real hashes so an unknown identifier costs the same as a wrong password.
        self._dummy_hash = hasher.hash("voidrunner_timing_dummy")

    def register(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> Credential:
        """Create a new credential and return it without the password hash.

        Raises ValidationError if username, email or password is empty and
        AlreadyExistsError if the username or the email is already taken.
        """
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email or not password:
            raise ValidationError("username, email, and password are required")

        if self.store.find_by_identifier(username, email) is not None:
            raise AlreadyExistsError()

        credential = Credential(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            first_name=first_name or "",
            last_name=last_name or "",
        )
        # The store enforces uniqueness atomically; a concurrent registration
        # that slipped past the check above is rejected here as well.
        created = self.store.create(credential)
        logger.info("Registered user id=%s username=%s", created.id, created.username)
        return created.redacted()

    def login(self, identifier: str, password: str) -> LoginResult:
        """Authenticate by username or email and mint a token.

        The identifier is compared against both fields. Stored emails are
        lowercased, so the email side of the comparison is lowercased too.
        """
        identifier = (identifier or "").strip()
        if not identifier or not password:
            raise ValidationError("identifier and password are required")

        credential = self.store.find_by_identifier(identifier, identifier.lower())
        if credential is None or not credential.password_hash:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.verify(password, self._dummy_hash)
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, credential.password_hash):
            raise InvalidCredentialsError()

        token = self.token_manager.issue(credential.id, credential.username, credential.email)
        logger.info("Login succeeded for user id=%s", credential.id)
        return LoginResult(token=token, credential=credential.redacted())

    def logout(self, token: str) -> None:
        """Revoke the token. Revoking an already revoked token succeeds."""
        if not token:
            raise ValidationError("token is required")
        self.token_manager.revoke(token)
