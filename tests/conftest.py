"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- In-memory database handle and session
- Encryption key
- A controllable clock for session expiry tests
"""

import os
from collections.abc import Generator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from storelink.db.connection import Database
from storelink.services.credential_store import CredentialStore
from storelink.services.store_registry import StoreConnectionRegistry


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep tests away from the real data dir and real key/secret env vars."""
    monkeypatch.setenv("STORELINK_DATA_DIR", str(tmp_path / "data"))
    for var in (
        "STORELINK_CREDENTIAL_KEY",
        "STORELINK_CREDENTIAL_KEY_FILE",
        "DATABASE_URL",
        "STORELINK_DB_PATH",
        "STORELINK_ENV",
        "SHOPIFY_WEBHOOK_SECRET",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def database() -> Generator[Database, None, None]:
    """In-memory SQLite database with all tables created."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database: Database) -> Generator[Session, None, None]:
    """Provide a session on the in-memory database."""
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def key() -> bytes:
    """Fresh 32-byte AES-256 key."""
    return os.urandom(32)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def credential_store(db_session: Session, key: bytes) -> CredentialStore:
    return CredentialStore(db_session, key)


@pytest.fixture
def registry(db_session: Session) -> StoreConnectionRegistry:
    return StoreConnectionRegistry(db_session)
