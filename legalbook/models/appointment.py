import uuid, enum
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, Text, Boolean, JSON, Index
from sqlalchemy.dialects.postgresql import UUID

from legalbook.db.base_class import Base


class AppointmentStatus(str, enum.Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"

class AppointmentType(str, enum.Enum):
    consultation = "consultation"
    follow_up = "follow_up"
    court_preparation = "court_preparation"
    document_review = "document_review"
    mediation = "mediation"
    other = "other"

class AppointmentPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"

class LocationType(str, enum.Enum):
    office = "office"
    virtual = "virtual"
    court = "court"
    client_location = "client_location"
    other = "other"


TERMINAL_STATUSES = frozenset({
    AppointmentStatus.completed,
    AppointmentStatus.cancelled,
    AppointmentStatus.no_show,
})

# statuses that occupy the professional's calendar
ACTIVE_STATUSES = frozenset(set(AppointmentStatus) - {AppointmentStatus.cancelled})


def default_reminder_settings() -> dict:
    return {"enabled": True, "intervals": [1440, 60], "methods": ["email"]}


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    client_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    professional_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    case_id = Column(
        UUID(as_uuid=True),
        ForeignKey("cases.id"),
        nullable=True,
        index=True,
    )

    # naive timestamps in the canonical timezone
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)

    type = Column(
        Enum(AppointmentType),
        nullable=False,
        default=AppointmentType.consultation,
    )
    priority = Column(
        Enum(AppointmentPriority),
        nullable=False,
        default=AppointmentPriority.medium,
    )
    status = Column(
        Enum(AppointmentStatus),
        nullable=False,
        default=AppointmentStatus.scheduled,
    )

    location_type = Column(Enum(LocationType), nullable=False, default=LocationType.office)
    location_address = Column(String, nullable=True)
    location_room = Column(String, nullable=True)
    location_meeting_link = Column(String, nullable=True)
    location_instructions = Column(Text, nullable=True)

    is_recurring = Column(Boolean, nullable=False, default=False)
    reminder_settings = Column(JSON, nullable=False, default=default_reminder_settings)

    booked_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    cancelled_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    completed_at = Column(DateTime, nullable=True)
    outcome = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_appointments_professional_start", "professional_id", "start_time"),
        Index("ix_appointments_client_start", "client_id", "start_time"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    @property
    def location(self) -> dict:
        return {
            "type": self.location_type,
            "address": self.location_address,
            "room": self.location_room,
            "meeting_link": self.location_meeting_link,
            "instructions": self.location_instructions,
        }

    def __repr__(self) -> str:
        return f"<Appointment id={self.id} status={self.status} at={self.start_time}>"
