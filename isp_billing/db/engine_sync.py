# isp_billing/db/engine_sync.py
"""
Synchronous SQLModel engine used by the API, the scheduler and the billing jobs.
SQLite (default) runs in WAL mode; any SQLAlchemy URL can be supplied through
DATABASE_URL.
"""
from typing import Generator

from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from ..core.config import get_settings


def build_engine(database_url: str):
    is_sqlite = database_url.startswith("sqlite")
    kwargs = {}
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, echo=False, **kwargs)

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    return engine


DATABASE_URL = get_settings().resolved_database_url()
sync_engine = build_engine(DATABASE_URL)


def get_sync_session() -> Generator[Session, None, None]:
    """
    Dependency for SYNC SQLModel session injection.
    Usage: session: Session = Depends(get_sync_session)
    """
    with Session(sync_engine) as session:
        yield session


def create_sync_db_and_tables(engine=None):
    """Create every table registered on SQLModel.metadata."""
    # Models must be imported so their tables are registered
    from .. import models  # noqa: F401

    SQLModel.metadata.create_all(engine or sync_engine)
