"""SQLAlchemy database configuration and session management."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tradescope.config import get_settings


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest correctly on pysqlite."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """Owns the engine and session factory for one process.

    Created explicitly at start-up (API lifespan, CLI callback, scheduler)
    and disposed at shutdown.

    Usage:
        database = Database()
        with database.session() as db:
            db.query(User).all()
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or get_settings().database_url

        engine_kwargs = {"echo": echo}
        if self.url.startswith("sqlite"):
            # Needed for SQLite
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                # In-memory databases must share one connection
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.url, **engine_kwargs)
        if self.url.startswith("sqlite"):
            _enable_sqlite_savepoints(self.engine)

        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=False,  # Allow accessing attributes after commit/close
        )

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Context manager for database sessions.

        Commits on success, rolls back on error, always closes.
        """
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_all(self) -> None:
        """Initialize database tables."""
        from .models import Base

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    def __repr__(self) -> str:
        return f"<Database(url={self.engine.url!r})>"
