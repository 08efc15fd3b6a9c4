"""Database setup for the audit sink — SQLite with WAL mode via SQLModel.

Only AdminDecisionRecord and ChangeLogRecord live here; the engines never
touch the database. Tables are created from SQLModel metadata.
"""

from __future__ import annotations

import os

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from timetrust.config import settings
from timetrust.models import audit  # noqa: F401  (registers audit tables)


def get_database_url(url: str | None = None) -> str:
    """Resolve the database URL, ensuring the SQLite directory exists."""
    url = url or settings.database_url
    if url.startswith("sqlite:///") and ":memory:" not in url:
        db_dir = os.path.dirname(url.replace("sqlite:///", ""))
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
    return url


@event.listens_for(Engine, "connect")
def set_sqlite_wal(dbapi_connection, connection_record):
    """Enable WAL mode so readers are not blocked by the audit writer."""
    if type(dbapi_connection).__module__.split(".")[0] != "sqlite3":
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def build_engine(url: str | None = None) -> Engine:
    return create_engine(
        get_database_url(url),
        echo=False,
        connect_args={"check_same_thread": False},
    )


def create_db_and_tables(engine: Engine) -> None:
    """Create all tables defined by SQLModel metadata."""
    SQLModel.metadata.create_all(engine)


def get_session(engine: Engine):
    with Session(engine) as session:
        yield session
