import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from legalbook.models.appointment import Appointment, AppointmentStatus, AppointmentType


@dataclass
class AppointmentQuery:
    client_id: Optional[uuid.UUID] = None
    professional_id: Optional[uuid.UUID] = None
    statuses: list[AppointmentStatus] = field(default_factory=list)
    types: list[AppointmentType] = field(default_factory=list)
    search: Optional[str] = None
    start_date: Optional[datetime] = None   # start_time >= start_date
    end_date: Optional[datetime] = None     # start_time <= end_date
    skip: int = 0
    limit: Optional[int] = 100
    # set by the access filter when the caller may see nothing
    match_nothing: bool = False


class CalendarStore(ABC):

    @abstractmethod
    def get(self, appointment_id: uuid.UUID) -> Appointment | None:
        pass

    @abstractmethod
    def find_overlapping(
        self,
        professional_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_id: uuid.UUID | None = None,
    ) -> list[Appointment]:
        """Active (non-cancelled) appointments with start < end and end > start,
        ordered by start_time."""
        pass

    @abstractmethod
    def search(self, query: AppointmentQuery) -> list[Appointment]:
        """Newest start_time first."""
        pass

    @abstractmethod
    def tally(self, query: AppointmentQuery) -> list[tuple[AppointmentStatus, AppointmentType, int]]:
        """Counts grouped by (status, type), ignoring skip/limit."""
        pass

    @abstractmethod
    def insert_if_free(self, appointment: Appointment) -> Appointment:
        """Insert unless an active appointment of the same professional overlaps.

        Raises ConflictError listing the overlaps, or ConcurrentWriteError
        when the database rejects the write.
        """
        pass

    @abstractmethod
    def reschedule_if_free(self, appointment: Appointment, start: datetime, end: datetime) -> Appointment:
        """Move an existing appointment, same guarantees as insert_if_free."""
        pass

    @abstractmethod
    def save(self, appointment: Appointment) -> Appointment:
        """Persist content changes; interval and status are left as stored."""
        pass

    @abstractmethod
    def save_transition(self, appointment: Appointment, expected_status: AppointmentStatus) -> Appointment:
        """Persist a status change, provided the stored status is still
        ``expected_status``; raises ConcurrentWriteError otherwise."""
        pass
