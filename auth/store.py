"""
auth/store.py -- Credential persistence: one capability, two adapters.

Pattern: Repository + Data Mapper. CredentialStore is the capability (a
typing.Protocol, not a base class). MemoryCredentialStore and
SqlCredentialStore implement it independently; create_credential_store()
picks one at startup from configuration. _row_to_credential is the mapper
for the SQL adapter.

Uniqueness contract:
  AuthService.register() checks for an existing username/email and then
  creates -- two steps that are not atomic on their own. Both adapters
  therefore enforce uniqueness inside create(): the memory adapter under its
  own mutex, the SQL adapter through UNIQUE constraints. Either way a
  collision surfaces as AlreadyExistsError.

Security:
  All SQL uses bound parameters. No f-strings in SQL.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from auth.errors import AlreadyExistsError, CredentialStoreError
from auth.models import Credential
from core.config import STORAGE_BACKEND_MEMORY, STORAGE_BACKEND_POSTGRES, Settings

logger = logging.getLogger("voidrunner.store")


class CredentialStore(Protocol):
    """What the auth core needs from credential persistence."""

    def find_by_identifier(self, username: str, email: str) -> Credential | None:
        """Return the credential whose username OR email matches, else None."""

    def create(self, credential: Credential) -> Credential:
        """Persist a new credential; raise AlreadyExistsError on collision."""

    def get_by_id(self, user_id: int) -> Credential | None:
        """Return the credential with this id, else None."""

    def close(self) -> None:
        """Release backend resources."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# In-memory adapter
# ---------------------------------------------------------------------------


class MemoryCredentialStore:
    """Process-local store backed by a dict. Default backend; lost on restart."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._credentials: dict[int, Credential] = {}
        self._next_id = 1

    def find_by_identifier(self, username: str, email: str) -> Credential | None:
        with self._lock:
            for cred in self._credentials.values():
                if cred.username == username or cred.email == email:
                    return _copy(cred)
        return None

    def create(self, credential: Credential) -> Credential:
        with self._lock:
            for cred in self._credentials.values():
                if cred.username == credential.username or cred.email == credential.email:
                    raise AlreadyExistsError()
            now = _now_iso()
            stored = _copy(credential)
            stored.id = self._next_id
            stored.created_at = now
            stored.updated_at = now
            self._credentials[stored.id] = stored
            self._next_id += 1
            return _copy(stored)

    def get_by_id(self, user_id: int) -> Credential | None:
        with self._lock:
            cred = self._credentials.get(user_id)
            return _copy(cred) if cred is not None else None

    def close(self) -> None:
        with self._lock:
            self._credentials.clear()


def _copy(cred: Credential) -> Credential:
    # Callers get their own instance so mutations never reach the stored record.
    return replace(cred)


# ---------------------------------------------------------------------------
# Relational adapter (SQLAlchemy Core)
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("first_name", String(255), nullable=False, server_default=""),
    Column("last_name", String(255), nullable=False, server_default=""),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so SQLite readers are not blocked by writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_sqlite_memory(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite+pysqlite://") or ":memory:" in db_url or "mode=memory" in db_url


class SqlCredentialStore:
    """Relational store. PostgreSQL in production, SQLite in tests.

    Usage:
        store = SqlCredentialStore("sqlite:///:memory:")
        cred = store.create(Credential(username="alice", email="alice@x.com", password_hash=h))
        store.find_by_identifier("alice", "alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        engine_args: dict = {}
        if db_url.startswith("sqlite"):
            engine_args["connect_args"] = {"check_same_thread": False}
            if _is_sqlite_memory(db_url):
                # One shared connection, otherwise each pool thread opens its
                # own empty in-memory database.
                engine_args["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, **engine_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def find_by_identifier(self, username: str, email: str) -> Credential | None:
        query = (
            _users.select()
            .where(or_(_users.c.username == username, _users.c.email == email))
            .order_by(_users.c.id)
            .limit(1)
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).fetchone()
        except SQLAlchemyError as exc:
            logger.exception("Credential lookup failed")
            raise CredentialStoreError() from exc
        return _row_to_credential(row) if row is not None else None

    def create(self, credential: Credential) -> Credential:
        """Insert a new credential and return it with id and timestamps set.

        The UNIQUE constraints on username and email make this the atomic
        guard against concurrent registrations of the same identity.
        """
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=credential.username,
                        email=credential.email,
                        password_hash=credential.password_hash,
                        first_name=credential.first_name,
                        last_name=credential.last_name,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise AlreadyExistsError() from exc
        except SQLAlchemyError as exc:
            logger.exception("Credential insert failed")
            raise CredentialStoreError() from exc
        return Credential(
            id=result.inserted_primary_key[0],
            username=credential.username,
            email=credential.email,
            password_hash=credential.password_hash,
            first_name=credential.first_name,
            last_name=credential.last_name,
            created_at=now,
            updated_at=now,
        )

    def get_by_id(self, user_id: int) -> Credential | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        except SQLAlchemyError as exc:
            logger.exception("Credential lookup by id failed")
            raise CredentialStoreError() from exc
        return _row_to_credential(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


def _row_to_credential(row) -> Credential:
    return Credential(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        first_name=row.first_name or "",
        last_name=row.last_name or "",
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_credential_store(settings: Settings) -> CredentialStore:
    """Build the adapter named by settings.storage_backend."""
    if settings.storage_backend == STORAGE_BACKEND_POSTGRES:
        logger.info("Using relational credential store")
        return SqlCredentialStore(settings.sqlalchemy_url)
    if settings.storage_backend == STORAGE_BACKEND_MEMORY:
        logger.info("Using in-memory credential store")
        return MemoryCredentialStore()
    raise ValueError(
        f"Invalid storage backend: {settings.storage_backend!r}. Supported backends are: memory, postgres"
    )
