import copy
import threading
import uuid
from collections import Counter
from datetime import datetime

from legalbook.models.appointment import Appointment
from legalbook.services.scheduling import errors
from .base import AppointmentQuery, CalendarStore
from .locks import ProfessionalLocks


class InMemoryCalendarStore(CalendarStore):
    """Process-local store, used for single-process deployments and tests.

    Records are copied on the way in and out so callers never hold a
    reference to the stored row.
    """

    # owned by reschedule_if_free and save_transition
    _GUARDED = ("start_time", "end_time", "status", "cancelled_by", "cancelled_at",
                "cancellation_reason", "completed_at", "outcome")

    def __init__(self, locks: ProfessionalLocks | None = None):
        self.locks = locks or ProfessionalLocks()
        self._rows: dict[uuid.UUID, Appointment] = {}
        self._rows_lock = threading.Lock()

    @staticmethod
    def _copy(appointment: Appointment) -> Appointment:
        clone = Appointment()
        for column in Appointment.__table__.columns:
            setattr(clone, column.key, copy.deepcopy(getattr(appointment, column.key)))
        return clone

    def _snapshot(self) -> list[Appointment]:
        with self._rows_lock:
            return list(self._rows.values())

    def _store(self, appointment: Appointment):
        now = datetime.utcnow()
        if appointment.id is None:
            appointment.id = uuid.uuid4()
        if appointment.created_at is None:
            appointment.created_at = now
        appointment.updated_at = now
        with self._rows_lock:
            self._rows[appointment.id] = self._copy(appointment)

    def get(self, appointment_id):
        with self._rows_lock:
            row = self._rows.get(appointment_id)
        return self._copy(row) if row is not None else None

    def find_overlapping(self, professional_id, start, end, exclude_id=None):
        hits = [
            row for row in self._snapshot()
            if row.professional_id == professional_id
            and row.is_active
            and row.start_time < end
            and row.end_time > start
            and row.id != exclude_id
        ]
        return [self._copy(row) for row in sorted(hits, key=lambda r: r.start_time)]

    def _matches(self, row: Appointment, query: AppointmentQuery) -> bool:
        if query.match_nothing:
            return False
        if query.client_id is not None and row.client_id != query.client_id:
            return False
        if query.professional_id is not None and row.professional_id != query.professional_id:
            return False
        if query.statuses and row.status not in query.statuses:
            return False
        if query.types and row.type not in query.types:
            return False
        if query.search:
            needle = query.search.casefold()
            haystack = f"{row.title or ''}\n{row.description or ''}".casefold()
            if needle not in haystack:
                return False
        if query.start_date is not None and row.start_time < query.start_date:
            return False
        if query.end_date is not None and row.start_time > query.end_date:
            return False
        return True

    def search(self, query: AppointmentQuery) -> list[Appointment]:
        rows = [row for row in self._snapshot() if self._matches(row, query)]
        rows.sort(key=lambda r: r.start_time, reverse=True)
        end = None if query.limit is None else query.skip + query.limit
        return [self._copy(row) for row in rows[query.skip:end]]

    def tally(self, query: AppointmentQuery):
        counts = Counter(
            (row.status, row.type) for row in self._snapshot() if self._matches(row, query)
        )
        return [(status, type_, count) for (status, type_), count in counts.items()]

    def insert_if_free(self, appointment: Appointment) -> Appointment:
        with self.locks.hold(appointment.professional_id):
            conflicts = self.find_overlapping(
                appointment.professional_id, appointment.start_time, appointment.end_time
            )
            if conflicts:
                raise errors.ConflictError(conflicts)
            self._store(appointment)
        return appointment

    def reschedule_if_free(self, appointment: Appointment, start: datetime, end: datetime) -> Appointment:
        with self.locks.hold(appointment.professional_id):
            conflicts = self.find_overlapping(
                appointment.professional_id, start, end, exclude_id=appointment.id
            )
            if conflicts:
                raise errors.ConflictError(conflicts)
            appointment.start_time = start
            appointment.end_time = end
            self._store(appointment)
        return appointment

    def save(self, appointment: Appointment) -> Appointment:
        with self.locks.hold(appointment.professional_id):
            with self._rows_lock:
                current = self._rows.get(appointment.id)
            if current is not None:
                for key in self._GUARDED:
                    setattr(appointment, key, getattr(current, key))
            self._store(appointment)
        return appointment

    def save_transition(self, appointment: Appointment, expected_status) -> Appointment:
        with self.locks.hold(appointment.professional_id):
            with self._rows_lock:
                current = self._rows.get(appointment.id)
            if current is None or current.status != expected_status:
                raise errors.ConcurrentWriteError(
                    f"status of {appointment.id} is no longer {expected_status.value}"
                )
            self._store(appointment)
        return appointment
