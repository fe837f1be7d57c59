"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for VoidRunner happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved -- secret policy and storage backend requirements.

Security notes:
  [M6] JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing
       relies on key entropy -- a short key weakens every token.

  [M7] In production mode (DEBUG not set or false), a missing JWT_SECRET is a
       hard startup failure. Dev mode generates a random one, which means
       tokens do not survive a restart.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("voidrunner.config")

STORAGE_BACKEND_MEMORY = "memory"
STORAGE_BACKEND_POSTGRES = "postgres"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (as long as DEBUG=true or a
    JWT_SECRET is present).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    jwt_secret: str = ""
    token_expire_seconds: int = 24 * 3600
    revocation_purge_seconds: int = 3600

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Credential storage
    # ------------------------------------------------------------------

    storage_backend: str = STORAGE_BACKEND_MEMORY
    # Explicit SQLAlchemy URL. When empty, the postgres backend builds one
    # from the PG_* fields below.
    database_url: str = ""
    pg_host: str = "localhost"
    pg_port: str = "5432"
    pg_user: str = ""
    pg_password: str = ""
    pg_dbname: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret(self) -> "Settings":
        """Enforce JWT_SECRET policy [M7].

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
        Production mode: refuse to start without one.
        Both modes: reject secrets shorter than 32 characters [M6].
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Issued tokens will not survive a restart.")
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_storage(self) -> "Settings":
        """Reject unknown backends and incomplete PostgreSQL configuration."""
        self.storage_backend = self.storage_backend.strip().lower() or STORAGE_BACKEND_MEMORY
        if self.storage_backend not in (STORAGE_BACKEND_MEMORY, STORAGE_BACKEND_POSTGRES):
            raise ValueError(
                f"Invalid storage backend: {self.storage_backend!r}. "
                f"Supported backends are: {STORAGE_BACKEND_MEMORY}, {STORAGE_BACKEND_POSTGRES}"
            )
        if self.storage_backend == STORAGE_BACKEND_POSTGRES and not self.database_url:
            required = {
                "PG_HOST": self.pg_host,
                "PG_PORT": self.pg_port,
                "PG_USER": self.pg_user,
                "PG_PASSWORD": self.pg_password,
                "PG_DBNAME": self.pg_dbname,
            }
            missing = [name for name, value in required.items() if not value]
            if missing:
                raise ValueError(
                    "Missing required PostgreSQL configuration when STORAGE_BACKEND is postgres: "
                    + ", ".join(missing)
                )
        return self

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        if self.revocation_purge_seconds <= 0:
            raise ValueError("REVOCATION_PURGE_SECONDS must be positive.")
        # bcrypt's own accepted range for the log2 cost factor.
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self

    @property
    def sqlalchemy_url(self) -> str:
        """Connection URL for the relational credential store."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.pg_user}:{self.pg_password}"
            f"@{self.pg_host}:{self.pg_port}/{self.pg_dbname}"
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
