"""
auth/errors.py -- Exception taxonomy for the credential and token core.

Every error carries a stable machine-readable `code`. The HTTP layer maps
exception classes to status codes and renders `code` plus the generic
`message`; the chained cause (`__cause__`) is logged, never returned.

  ValidationError          missing/empty required input -- caller's fault
  AlreadyExistsError       username or email collision
  InvalidCredentialsError  wrong identifier OR wrong password (one message)
  InvalidTokenError        malformed, forged, wrong algorithm, or revoked
  ExpiredTokenError        correctly signed but past its expiry
  HashingError             bcrypt failure (internal)
  SigningError             JWT encode failure (internal)
  RevocationError          token could not be parsed for revocation
  CredentialStoreError     storage backend failure (internal)

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by the auth core."""

    code = "auth_error"
    message = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationError(AuthError):
    code = "validation_error"
    message = "Invalid request."


class AlreadyExistsError(AuthError):
    code = "already_exists"
    message = "User already exists."


class InvalidCredentialsError(AuthError):
    """Raised for unknown identifiers and wrong passwords alike.

    The message is fixed on purpose: callers must not be able to tell which
    of the two checks failed.
    """

    code = "invalid_credentials"
    message = "Invalid credentials."

    def __init__(self) -> None:
        super().__init__()


class TokenError(AuthError):
    code = "invalid_token"
    message = "Invalid token."


class InvalidTokenError(TokenError):
    def __init__(self) -> None:
        super().__init__()


class ExpiredTokenError(TokenError):
    code = "token_expired"
    message = "Token has expired."

    def __init__(self) -> None:
        super().__init__()


class HashingError(AuthError):
    code = "internal_error"
    message = "Failed to hash password."


class SigningError(AuthError):
    code = "internal_error"
    message = "Failed to sign token."


class RevocationError(AuthError):
    code = "invalid_token"
    message = "Failed to revoke token."


class CredentialStoreError(AuthError):
    code = "internal_error"
    message = "Credential store failure."
