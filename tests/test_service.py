"""Unit tests for auth/service.py -- register / login / logout orchestration.

Covers:
- Scenario A: username collision alone blocks registration (email too)
- Scenario B: login by username and by email
- Scenario C: unknown identifier and wrong password are indistinguishable
- Scenario D: logout revokes; a second logout still succeeds
- Input normalization and required-field validation
- The password hash never leaves the service
- Timing equalization: unknown identifiers still pay for a bcrypt check
"""

from __future__ import annotations

import pytest

from auth.errors import (
    AlreadyExistsError,
    InvalidCredentialsError,
    InvalidTokenError,
    RevocationError,
    ValidationError,
)
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import MemoryCredentialStore
from auth.tokens import TokenManager


class CountingHasher(PasswordHasher):
    """PasswordHasher that records how many times verify() ran."""

    def __init__(self) -> None:
        super().__init__(rounds=4)
        self.verify_calls = 0

    def verify(self, plain: str, hashed: str) -> bool:
        self.verify_calls += 1
        return super().verify(plain, hashed)


@pytest.fixture
def registered(service: AuthService) -> AuthService:
    """Service with alice@x.com / pw123 already registered (Scenario A, step 1)."""
    service.register("alice", "alice@x.com", "pw123")
    return service


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


class TestRegister:
    def test_register_returns_redacted_credential(self, service: AuthService) -> None:
        cred = service.register("alice", "alice@x.com", "pw123", first_name="Alice", last_name="Liddell")
        assert cred.id is not None
        assert cred.username == "alice"
        assert cred.email == "alice@x.com"
        assert cred.first_name == "Alice"
        assert cred.last_name == "Liddell"
        assert cred.created_at
        assert cred.password_hash == ""

    def test_stored_hash_is_bcrypt(self, service: AuthService) -> None:
        cred = service.register("alice", "alice@x.com", "pw123")
        stored = service.store.get_by_id(cred.id)
        assert stored.password_hash.startswith("$2")
        assert "pw123" not in stored.password_hash

    def test_username_collision(self, registered: AuthService) -> None:
        """Scenario A: same username, different email -> AlreadyExistsError."""
        with pytest.raises(AlreadyExistsError):
            registered.register("alice", "other@x.com", "pw999")

    def test_email_collision(self, registered: AuthService) -> None:
        with pytest.raises(AlreadyExistsError):
            registered.register("alice2", "alice@x.com", "pw999")

    def test_email_collision_is_case_insensitive(self, registered: AuthService) -> None:
        with pytest.raises(AlreadyExistsError):
            registered.register("alice2", "  ALICE@X.com ", "pw999")

    def test_normalization(self, service: AuthService) -> None:
        cred = service.register("  bob  ", "  Bob@Example.COM ", "pw")
        assert cred.username == "bob"
        assert cred.email == "bob@example.com"

    @pytest.mark.parametrize(
        "username,email,password",
        [
            ("", "a@x.com", "pw"),
            ("a", "", "pw"),
            ("a", "a@x.com", ""),
            ("   ", "a@x.com", "pw"),
        ],
    )
    def test_required_fields(self, service: AuthService, username: str, email: str, password: str) -> None:
        with pytest.raises(ValidationError):
            service.register(username, email, password)

    def test_store_level_collision_surfaces(self, service: AuthService, monkeypatch) -> None:
        """A duplicate that slips past the existence check is still rejected by the store."""
        service.register("alice", "alice@x.com", "pw123")
        monkeypatch.setattr(service.store, "find_by_identifier", lambda username, email: None)
        with pytest.raises(AlreadyExistsError):
            service.register("alice", "alice2@x.com", "pw123")


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_by_username(self, registered: AuthService) -> None:
        """Scenario B: login with the username returns a valid token."""
        token, cred = registered.login("alice", "pw123")
        claims = registered.token_manager.validate(token)
        assert claims.username == "alice"
        assert claims.email == "alice@x.com"
        assert claims.user_id == cred.id
        assert cred.password_hash == ""

    def test_login_by_email(self, registered: AuthService) -> None:
        """Scenario B: the same identifier field also matches the email."""
        result = registered.login("alice@x.com", "pw123")
        assert registered.token_manager.validate(result.token).username == "alice"

    def test_login_by_mixed_case_email(self, registered: AuthService) -> None:
        result = registered.login("  Alice@X.com ", "pw123")
        assert result.credential.username == "alice"

    def test_login_trims_identifier(self, registered: AuthService) -> None:
        assert registered.login("  alice  ", "pw123").credential.username == "alice"

    def test_wrong_password_and_unknown_user_are_identical(self, registered: AuthService) -> None:
        """Scenario C: both failures raise the same error with the same message."""
        with pytest.raises(InvalidCredentialsError) as wrong_pw:
            registered.login("alice", "wrongpw")
        with pytest.raises(InvalidCredentialsError) as unknown:
            registered.login("nobody", "whatever")
        assert type(wrong_pw.value) is type(unknown.value)
        assert str(wrong_pw.value) == str(unknown.value)
        assert wrong_pw.value.code == unknown.value.code

    @pytest.mark.parametrize("identifier,password", [("", "pw123"), ("alice", ""), ("   ", "pw123")])
    def test_required_fields(self, registered: AuthService, identifier: str, password: str) -> None:
        with pytest.raises(ValidationError):
            registered.login(identifier, password)

    def test_unknown_identifier_still_runs_bcrypt(self, token_manager: TokenManager) -> None:
        hasher = CountingHasher()
        svc = AuthService(store=MemoryCredentialStore(), token_manager=token_manager, hasher=hasher)
        with pytest.raises(InvalidCredentialsError):
            svc.login("ghost", "whatever")
        assert hasher.verify_calls == 1


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


class TestLogout:
    def test_logout_revokes_and_is_idempotent(self, registered: AuthService) -> None:
        """Scenario D."""
        token, _ = registered.login("alice", "pw123")
        registered.logout(token)
        with pytest.raises(InvalidTokenError):
            registered.token_manager.validate(token)
        registered.logout(token)

    def test_logout_does_not_affect_other_sessions(self, registered: AuthService) -> None:
        first, _ = registered.login("alice", "pw123")
        second, _ = registered.login("alice@x.com", "pw123")
        registered.logout(first)
        assert registered.token_manager.validate(second).username == "alice"

    def test_logout_requires_token(self, service: AuthService) -> None:
        with pytest.raises(ValidationError):
            service.logout("")

    def test_logout_garbage_token(self, service: AuthService) -> None:
        with pytest.raises(RevocationError):
            service.logout("definitely-not-a-jwt")
