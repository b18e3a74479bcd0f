import uuid
from dataclasses import dataclass
from datetime import datetime

from legalbook.models.appointment import Appointment, AppointmentStatus
from legalbook.services.calendar import CalendarStore


def intervals_overlap(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    """Half-open [s, e) intervals; touching endpoints do not overlap."""
    return s1 < e2 and s2 < e1


@dataclass(frozen=True)
class ConflictSummary:
    id: uuid.UUID
    title: str
    client_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "ConflictSummary":
        return cls(
            id=appointment.id,
            title=appointment.title,
            client_id=appointment.client_id,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            status=appointment.status,
        )


class ConflictDetector:

    def __init__(self, store: CalendarStore):
        self.store = store

    def find_conflicts(
        self,
        professional_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: uuid.UUID | None = None,
    ) -> list[ConflictSummary]:
        rows = self.store.find_overlapping(professional_id, start, end, exclude_appointment_id)
        return [
            ConflictSummary.from_appointment(row)
            for row in rows
            if row.is_active and intervals_overlap(start, end, row.start_time, row.end_time)
        ]
