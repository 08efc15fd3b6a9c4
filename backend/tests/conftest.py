"""Shared test fixtures for TimeTrust backend tests."""

import datetime as dt
import os
import sys
from itertools import count

import pytest

# Ensure backend is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ.setdefault("TIMETRUST_DATABASE_URL", "sqlite://")

from sqlmodel import Session, SQLModel, create_engine
from timetrust.audit.decision_store import DecisionStore
from timetrust.models import audit  # noqa: F401
from timetrust.models.entry import Project, TenantSettings, TimeInterval

# A Monday
MONDAY = dt.date(2024, 3, 4)

_ids = count(1)


def make_entry(
    start: str = "09:00",
    end: str = "10:00",
    *,
    owner_id: str = "alice",
    project_id: str = "proj-a",
    date: dt.date = MONDAY,
    entry_id: str | None = None,
    **fields,
) -> TimeInterval:
    """Build a TimeInterval with sensible defaults; duration is derived."""
    return TimeInterval(
        id=entry_id or f"e{next(_ids)}",
        owner_id=owner_id,
        project_id=project_id,
        date=date,
        start_time=start,
        end_time=end,
        **fields,
    )


def history(
    n: int,
    *,
    start: str = "09:00",
    end: str = "11:00",
    first_day: dt.date = dt.date(2024, 1, 1),
    **fields,
) -> list[TimeInterval]:
    """``n`` entries on ``n`` consecutive days with identical times."""
    return [
        make_entry(start, end, date=first_day + dt.timedelta(days=i), **fields)
        for i in range(n)
    ]


@pytest.fixture
def entry_factory():
    return make_entry


@pytest.fixture
def projects():
    return [
        Project(id="proj-a", name="Website Relaunch"),
        Project(id="proj-b", name="Internal Tools"),
    ]


@pytest.fixture
def notes_settings():
    """Tenant settings that require notes on billable time."""
    return TenantSettings(require_notes_for_billable=True)


@pytest.fixture
def db_session():
    """Session on a fresh in-memory SQLite database."""
    engine = create_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def decision_store(db_session):
    return DecisionStore(db_session)
