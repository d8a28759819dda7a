from contextlib import contextmanager
from typing import Any, Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import CursorResult, Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import NullPool
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite doesn't benefit from connection pooling
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": NullPool,
            "echo": False,
        }
    return {
        "connect_args": {"connect_timeout": 10},
        "pool_size": 20,  # Number of connections to maintain
        "max_overflow": 10,  # Additional connections when pool is exhausted
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_timeout": 30,
        "echo": False,
    }


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # ON DELETE CASCADE / SET NULL are no-ops in SQLite without this
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Explicit handle around one engine and its session factory.

    Created once at startup and stored on ``app.state.database``; request
    handlers receive sessions from it through :func:`get_db`.
    """

    def __init__(self, url: str, **engine_overrides: Any):
        self.url = url
        kwargs = _engine_kwargs(url)
        if "poolclass" in engine_overrides:
            for key in ("pool_size", "max_overflow", "pool_timeout", "pool_recycle"):
                kwargs.pop(key, None)
        kwargs.update(engine_overrides)
        self.engine: Engine = create_engine(url, **kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session whose work is committed on success and rolled back on error."""
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def execute(self, statement, params: Optional[dict] = None) -> list:
        with self.transaction() as session:
            result = session.execute(statement, params or {})
            # DML without RETURNING has no rows to fetch
            if isinstance(result, CursorResult) and not result.returns_rows:
                return []
            return list(result.all())

    def execute_one(self, statement, params: Optional[dict] = None):
        rows = self.execute(statement, params)
        return rows[0] if rows else None

    def ping(self) -> bool:
        return self.execute_one(text("SELECT 1")) is not None

    def create_all(self) -> None:
        from immobilien import models  # noqa: F401 register all models

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()
