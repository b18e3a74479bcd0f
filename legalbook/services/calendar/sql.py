import logging
import uuid
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func, or_, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Query, Session

from legalbook.models.appointment import ACTIVE_STATUSES, Appointment
from legalbook.services.scheduling import errors
from .base import AppointmentQuery, CalendarStore
from .locks import ProfessionalLocks, process_locks

logger = logging.getLogger(__name__)


class SqlCalendarStore(CalendarStore):

    def __init__(self, db: Session, locks: ProfessionalLocks = process_locks):
        self.db = db
        self.locks = locks

    def get(self, appointment_id: uuid.UUID) -> Appointment | None:
        return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def find_overlapping(self, professional_id, start, end, exclude_id=None):
        q = self.db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.start_time < end,
            Appointment.end_time > start,
        )
        if exclude_id is not None:
            q = q.filter(Appointment.id != exclude_id)
        return q.order_by(Appointment.start_time).all()

    def _filtered(self, query: AppointmentQuery) -> Query:
        q = self.db.query(Appointment)

        if query.match_nothing:
            return q.filter(Appointment.id.is_(None))
        if query.client_id is not None:
            q = q.filter(Appointment.client_id == query.client_id)
        if query.professional_id is not None:
            q = q.filter(Appointment.professional_id == query.professional_id)
        if query.statuses:
            q = q.filter(Appointment.status.in_(query.statuses))
        if query.types:
            q = q.filter(Appointment.type.in_(query.types))
        if query.search:
            pattern = f"%{query.search}%"
            q = q.filter(or_(
                Appointment.title.ilike(pattern),
                Appointment.description.ilike(pattern),
            ))
        if query.start_date is not None:
            q = q.filter(Appointment.start_time >= query.start_date)
        if query.end_date is not None:
            q = q.filter(Appointment.start_time <= query.end_date)
        return q

    def search(self, query: AppointmentQuery) -> list[Appointment]:
        q = self._filtered(query).order_by(Appointment.start_time.desc()).offset(query.skip)
        if query.limit is not None:
            q = q.limit(query.limit)
        return q.all()

    def tally(self, query: AppointmentQuery):
        rows = (
            self._filtered(query)
            .with_entities(Appointment.status, Appointment.type, func.count(Appointment.id))
            .group_by(Appointment.status, Appointment.type)
            .all()
        )
        return [(status, type_, count) for status, type_, count in rows]

    @contextmanager
    def _exclusive(self, professional_id):
        """Serialize writers for one professional.

        The in-process lock covers threads of this worker; the advisory
        lock covers other workers and lives until commit or rollback.
        """
        with self.locks.hold(professional_id):
            try:
                if self.db.get_bind().dialect.name == "postgresql":
                    self.db.execute(
                        text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"),
                        {"key": str(professional_id)},
                    )
                yield
            except Exception:
                self.db.rollback()
                raise

    def _commit(self):
        try:
            self.db.commit()
        except (IntegrityError, OperationalError) as exc:
            self.db.rollback()
            logger.warning("Calendar write rejected by database: %s", exc)
            raise errors.ConcurrentWriteError(str(exc)) from exc

    def insert_if_free(self, appointment: Appointment) -> Appointment:
        with self._exclusive(appointment.professional_id):
            conflicts = self.find_overlapping(
                appointment.professional_id, appointment.start_time, appointment.end_time
            )
            if conflicts:
                raise errors.ConflictError(conflicts)
            self.db.add(appointment)
            self._commit()

        self.db.refresh(appointment)
        return appointment

    def reschedule_if_free(self, appointment: Appointment, start: datetime, end: datetime) -> Appointment:
        with self._exclusive(appointment.professional_id):
            conflicts = self.find_overlapping(
                appointment.professional_id, start, end, exclude_id=appointment.id
            )
            if conflicts:
                raise errors.ConflictError(conflicts)
            appointment.start_time = start
            appointment.end_time = end
            self.db.add(appointment)
            self._commit()

        self.db.refresh(appointment)
        return appointment

    def save(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self._commit()
        self.db.refresh(appointment)
        return appointment

    def save_transition(self, appointment: Appointment, expected_status) -> Appointment:
        with self._exclusive(appointment.professional_id):
            current = (
                self.db.query(Appointment.status)
                .filter(Appointment.id == appointment.id)
                .scalar()
            )
            if current != expected_status:
                raise errors.ConcurrentWriteError(
                    f"status of {appointment.id} moved from {expected_status.value} to {current}"
                )
            self.db.add(appointment)
            self._commit()

        self.db.refresh(appointment)
        return appointment
