"""Shared fixtures.

Unit tests run the scheduling service against the in-memory calendar
store and dictionary-backed directories; API tests run the FastAPI app
against an in-memory SQLite database shared through a StaticPool.
"""

from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CALENDAR_STORE"] = "sql"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid
from datetime import datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from legalbook.api import deps
from legalbook.core.security import create_access_token
from legalbook.db.base import Base
from legalbook.main import app
from legalbook.models.case import Case
from legalbook.models.user import User, UserRole
from legalbook.services.calendar.memory import InMemoryCalendarStore
from legalbook.services.directory import (
    CaseDirectory,
    DirectoryCase,
    DirectoryUser,
    UserDirectory,
)
from legalbook.services.scheduling.availability import BusinessHours
from legalbook.services.scheduling.service import SchedulingService

# Monday morning; 2025-06-10 is the following Tuesday
NOW = datetime(2025, 6, 9, 8, 0)
NAIROBI = ZoneInfo("Africa/Nairobi")


class FrozenClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class DictUserDirectory(UserDirectory):
    def __init__(self, users):
        self.users = {u.id: u for u in users}

    def resolve_user(self, user_id):
        return self.users.get(user_id)


class DictCaseDirectory(CaseDirectory):
    def __init__(self, cases):
        self.cases = {c.id: c for c in cases}

    def resolve_case(self, case_id):
        return self.cases.get(case_id)


def _make_user(role: UserRole, name: str, **kwargs) -> DirectoryUser:
    return DirectoryUser(id=uuid.uuid4(), role=role, full_name=name, **kwargs)


# ── Unit fixtures ────────────────────────────────────────────────────


@pytest.fixture()
def people() -> SimpleNamespace:
    return SimpleNamespace(
        client=_make_user(UserRole.client, "Wanjiru Client"),
        other_client=_make_user(UserRole.client, "Otieno Client"),
        professional=_make_user(UserRole.professional, "Advocate Kamau"),
        other_professional=_make_user(UserRole.professional, "Advocate Njeri"),
        admin=_make_user(UserRole.admin, "Scheduling Admin", can_schedule_appointments=True),
        plain_admin=_make_user(UserRole.admin, "Plain Admin"),
        inactive_professional=_make_user(UserRole.professional, "Retired Advocate", is_active=False),
    )


@pytest.fixture()
def legal_case(people) -> DirectoryCase:
    return DirectoryCase(id=uuid.uuid4(), title="Kamau v. Republic")


@pytest.fixture()
def users(people) -> DictUserDirectory:
    return DictUserDirectory(vars(people).values())


@pytest.fixture()
def cases(legal_case) -> DictCaseDirectory:
    return DictCaseDirectory([legal_case])


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def store() -> InMemoryCalendarStore:
    return InMemoryCalendarStore()


@pytest.fixture()
def service(store, users, cases, clock) -> SchedulingService:
    return SchedulingService(
        store=store,
        users=users,
        cases=cases,
        hours=BusinessHours(),
        tz=NAIROBI,
        clock=clock,
    )


# ── Database / API fixtures ──────────────────────────────────────────


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture()
def accounts(db_session, people, legal_case) -> SimpleNamespace:
    """The ``people`` fixture persisted as User rows, plus one case."""
    for key, person in vars(people).items():
        db_session.add(User(
            id=person.id,
            email=f"{key}@example.com",
            full_name=person.full_name,
            role=person.role,
            is_active=person.is_active,
            can_schedule_appointments=person.can_schedule_appointments,
        ))
    db_session.add(Case(
        id=legal_case.id,
        title=legal_case.title,
        case_number="HCCC-042",
        client_id=people.client.id,
        professional_id=people.professional.id,
    ))
    db_session.commit()
    return people


@pytest.fixture()
def api(session_factory, accounts, clock):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_clock] = lambda: clock
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth_headers():
    return auth
