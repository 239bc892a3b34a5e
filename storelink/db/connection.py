"""Database connection management for StoreLink.

A ``Database`` handle owns the SQLAlchemy engine and session factory. The API
factory builds exactly one per process and stores it on ``app.state``; the
CLI builds its own. Nothing here is a module-level singleton.

Usage:
    # FastAPI
    @router.get("/stores")
    def list_stores(db: Session = Depends(get_db)):
        ...

    # Outside a request
    database = Database(get_database_url())
    database.create_all()
    with database.session_scope() as db:
        ...
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storelink.db.models import Base


def get_database_url() -> str:
    """Get database URL from environment or use default SQLite.

    Precedence:
    1. DATABASE_URL (canonical)
    2. STORELINK_DB_PATH (converted to sqlite URL)
    3. sqlite:///<data dir>/storelink.db
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        return database_url

    db_path = os.environ.get("STORELINK_DB_PATH", "").strip()
    if db_path:
        if db_path.startswith("sqlite:"):
            return db_path
        return f"sqlite:///{db_path}"

    from storelink.utils.paths import get_default_db_path
    return f"sqlite:///{get_default_db_path()}"


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class Database:
    """Engine plus session factory for one database URL.

    In-memory SQLite URLs use a StaticPool so every session shares the same
    connection (and therefore the same tables).

    Args:
        url: SQLAlchemy database URL.
        echo: Log emitted SQL.
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        engine_kwargs: dict[str, Any] = {"echo": echo}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(url):
                engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(url, **engine_kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragma)
        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )

    def create_all(self) -> None:
        """Create all tables (no-op for tables that already exist)."""
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        """Open a new session. The caller closes it."""
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Context manager that commits on success and rolls back on error.

        Usage:
            with database.session_scope() as db:
                db.add(row)
        """
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()


def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Configure SQLite pragmas for correctness and concurrency.

    Enables:
    - foreign_keys=ON: Referential integrity (disabled by default in SQLite).
    - journal_mode=WAL: Concurrent readers alongside a single writer.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.close()


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a request-scoped session from the app's Database handle.

    Intended for use with FastAPI's Depends(). Tests override it through
    ``app.dependency_overrides[get_db]``.

    Yields:
        Session: SQLAlchemy session that will be closed after use.
    """
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
