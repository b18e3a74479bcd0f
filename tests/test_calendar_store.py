"""Contract tests run against both calendar store backends, plus a
two-session race against a file-backed SQLite database."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from legalbook.db.base import Base
from legalbook.models.appointment import Appointment, AppointmentStatus, AppointmentType
from legalbook.schemas.appointment import AppointmentCreate
from legalbook.core.config import settings
from legalbook.services.calendar import AppointmentQuery, create_shared_store, get_calendar_store
from legalbook.services.calendar.locks import ProfessionalLocks
from legalbook.services.calendar.memory import InMemoryCalendarStore
from legalbook.services.calendar.sql import SqlCalendarStore
from legalbook.services.scheduling import errors
from legalbook.services.scheduling.access import Caller
from legalbook.services.scheduling.availability import BusinessHours
from legalbook.services.scheduling.service import SchedulingService

NAIROBI = ZoneInfo("Africa/Nairobi")

S = AppointmentStatus
NINE = datetime(2025, 6, 10, 9, 0)


def _make_appointment(
    professional_id: uuid.UUID,
    start: datetime = NINE,
    minutes: int = 60,
    title: str = "Consultation",
    type_: AppointmentType = AppointmentType.consultation,
) -> Appointment:
    return Appointment(
        id=uuid.uuid4(),
        title=title,
        client_id=uuid.uuid4(),
        professional_id=professional_id,
        booked_by=uuid.uuid4(),
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        type=type_,
        status=S.scheduled,
        reminder_settings={"enabled": True, "intervals": [60], "methods": ["email"]},
    )


@pytest.fixture(params=["memory", "sql"])
def calendar(request):
    if request.param == "memory":
        return InMemoryCalendarStore()
    return SqlCalendarStore(request.getfixturevalue("db_session"), locks=ProfessionalLocks())


class TestWrites:
    def test_insert_then_get(self, calendar):
        pid = uuid.uuid4()
        appt = calendar.insert_if_free(_make_appointment(pid))

        stored = calendar.get(appt.id)

        assert stored.start_time == NINE
        assert stored.created_at is not None
        assert calendar.get(uuid.uuid4()) is None

    def test_insert_overlap_rejected(self, calendar):
        pid = uuid.uuid4()
        first = calendar.insert_if_free(_make_appointment(pid))

        with pytest.raises(errors.ConflictError) as exc_info:
            calendar.insert_if_free(_make_appointment(pid, start=NINE + timedelta(minutes=30)))

        assert [row.id for row in exc_info.value.conflicts] == [first.id]
        assert len(calendar.search(AppointmentQuery(professional_id=pid))) == 1

    def test_reschedule(self, calendar):
        pid = uuid.uuid4()
        appt = calendar.insert_if_free(_make_appointment(pid))
        calendar.insert_if_free(_make_appointment(pid, start=NINE + timedelta(hours=2)))

        moved = calendar.reschedule_if_free(appt, NINE + timedelta(minutes=30), NINE + timedelta(minutes=90))
        assert calendar.get(appt.id).start_time == NINE + timedelta(minutes=30)

        with pytest.raises(errors.ConflictError):
            calendar.reschedule_if_free(moved, NINE + timedelta(hours=2), NINE + timedelta(hours=3))
        assert calendar.get(appt.id).start_time == NINE + timedelta(minutes=30)

    def test_save_content(self, calendar):
        appt = calendar.insert_if_free(_make_appointment(uuid.uuid4()))
        appt.title = "Lease review"

        calendar.save(appt)

        assert calendar.get(appt.id).title == "Lease review"

    def test_save_transition_checks_status(self, calendar):
        appt = calendar.insert_if_free(_make_appointment(uuid.uuid4()))
        appt.status = S.confirmed

        with pytest.raises(errors.ConcurrentWriteError):
            calendar.save_transition(appt, S.in_progress)

        appt = calendar.get(appt.id)
        appt.status = S.confirmed
        calendar.save_transition(appt, S.scheduled)
        assert calendar.get(appt.id).status == S.confirmed

    def test_cancelled_not_overlapping(self, calendar):
        pid = uuid.uuid4()
        appt = calendar.insert_if_free(_make_appointment(pid))
        appt.status = S.cancelled
        calendar.save_transition(appt, S.scheduled)

        assert calendar.find_overlapping(pid, NINE, NINE + timedelta(hours=1)) == []
        calendar.insert_if_free(_make_appointment(pid))


class TestQueries:
    def _seed(self, calendar, pid):
        calendar.insert_if_free(_make_appointment(pid, title="Lease review"))
        calendar.insert_if_free(_make_appointment(
            pid, start=NINE + timedelta(days=1), type_=AppointmentType.mediation
        ))
        calendar.insert_if_free(_make_appointment(uuid.uuid4(), start=NINE + timedelta(days=2)))

    def test_search_filters(self, calendar):
        pid = uuid.uuid4()
        self._seed(calendar, pid)

        assert len(calendar.search(AppointmentQuery())) == 3
        assert len(calendar.search(AppointmentQuery(professional_id=pid))) == 2
        assert len(calendar.search(AppointmentQuery(types=[AppointmentType.mediation]))) == 1
        assert [a.title for a in calendar.search(AppointmentQuery(search="lease"))] == ["Lease review"]
        assert calendar.search(AppointmentQuery(match_nothing=True)) == []

    def test_search_date_range_and_order(self, calendar):
        self._seed(calendar, uuid.uuid4())

        rows = calendar.search(AppointmentQuery(
            start_date=NINE + timedelta(hours=1), end_date=NINE + timedelta(days=2),
        ))

        assert [a.start_time for a in rows] == [NINE + timedelta(days=2), NINE + timedelta(days=1)]

    def test_tally(self, calendar):
        pid = uuid.uuid4()
        self._seed(calendar, pid)

        counts = {
            (status, type_): n
            for status, type_, n in calendar.tally(AppointmentQuery(professional_id=pid))
        }

        assert counts == {
            (S.scheduled, AppointmentType.consultation): 1,
            (S.scheduled, AppointmentType.mediation): 1,
        }


class TestStoreFactory:
    def test_memory_backend_built_once(self, db_session):
        with patch.object(settings, "CALENDAR_STORE", "memory"):
            shared = create_shared_store()

        assert isinstance(shared, InMemoryCalendarStore)
        assert get_calendar_store(db_session, shared) is shared

    def test_sql_backend_per_session(self, db_session):
        with patch.object(settings, "CALENDAR_STORE", "sql"):
            shared = create_shared_store()

        store = get_calendar_store(db_session, shared)

        assert shared is None
        assert isinstance(store, SqlCalendarStore)
        assert store is not get_calendar_store(db_session, shared)


class TestSqlRace:
    """Two sessions, one per thread, booking the same slot."""

    def test_one_booking_wins(self, tmp_path, people, users, cases, clock):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'calendar.db'}",
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(bind=engine)
        Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        locks = ProfessionalLocks()
        barrier = threading.Barrier(2)
        won, lost = [], []

        def attempt(client):
            db = Session()
            try:
                service = SchedulingService(
                    store=SqlCalendarStore(db, locks=locks),
                    users=users,
                    cases=cases,
                    hours=BusinessHours(),
                    tz=NAIROBI,
                    clock=clock,
                )
                booking = AppointmentCreate(
                    title="Consultation",
                    client_id=client.id,
                    professional_id=people.professional.id,
                    start_time=NINE,
                    end_time=NINE + timedelta(hours=1),
                )
                barrier.wait()
                try:
                    won.append(service.book(Caller.from_user(people.admin), booking).id)
                except errors.ConflictError as exc:
                    lost.append(exc)
            finally:
                db.close()

        threads = [
            threading.Thread(target=attempt, args=(client,))
            for client in (people.client, people.other_client)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(won) == 1
        assert len(lost) == 1
        assert [c.id for c in lost[0].conflicts] == won

        db = Session()
        try:
            assert db.query(Appointment).count() == 1
        finally:
            db.close()
            engine.dispose()
