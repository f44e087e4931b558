"""Engine construction and per-request session handling."""
from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from closer_ledger.db import Base, models  # noqa: F401  # Ensure models are imported for metadata registration

from .settings import get_settings


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite gets cross-thread access and enforced foreign keys."""

    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    engine = create_engine(database_url, future=True, pool_pre_ping=not is_sqlite, connect_args=connect_args)
    if is_sqlite:
        # SQLite ignores ON DELETE CASCADE unless the pragma is set on every connection.
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


ENGINE = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=ENGINE, class_=Session, autoflush=False, autocommit=False)


def get_db_session() -> Generator[Session, None, None]:
    """Yield a database session; anything left uncommitted is rolled back on close."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def create_database_schema() -> None:
    """Create database tables based on ORM metadata."""

    Base.metadata.create_all(bind=ENGINE)
