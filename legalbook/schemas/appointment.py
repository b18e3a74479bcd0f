import enum
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from uuid import UUID
from typing import Dict, List, Optional

from legalbook.models.appointment import (
    AppointmentPriority,
    AppointmentStatus,
    AppointmentType,
    LocationType,
)


class ReminderMethod(str, enum.Enum):
    email = "email"
    sms = "sms"
    whatsapp = "whatsapp"


class ReminderSettings(BaseModel):
    """Passed through untouched to the notification service."""

    enabled: bool = True
    intervals: List[int] = Field(default_factory=lambda: [1440, 60])  # minutes before start
    methods: List[ReminderMethod] = Field(default_factory=lambda: [ReminderMethod.email])

    @field_validator("intervals")
    @classmethod
    def unique_descending(cls, v: List[int]) -> List[int]:
        if any(minutes <= 0 for minutes in v):
            raise ValueError("reminder intervals must be positive")
        return sorted(set(v), reverse=True)

    @field_validator("methods")
    @classmethod
    def unique_methods(cls, v: List[ReminderMethod]) -> List[ReminderMethod]:
        return list(dict.fromkeys(v))


class Location(BaseModel):
    type: LocationType = LocationType.office
    address: Optional[str] = None
    room: Optional[str] = None
    meeting_link: Optional[str] = None
    instructions: Optional[str] = None


class AppointmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)

    client_id: UUID
    professional_id: UUID
    case_id: Optional[UUID] = None

    start_time: datetime
    end_time: datetime

    type: AppointmentType = AppointmentType.consultation
    priority: AppointmentPriority = AppointmentPriority.medium
    location: Location = Field(default_factory=Location)

    is_recurring: bool = False
    reminder_settings: ReminderSettings = Field(default_factory=ReminderSettings)


class AppointmentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    type: Optional[AppointmentType] = None
    priority: Optional[AppointmentPriority] = None
    location: Optional[Location] = None
    reminder_settings: Optional[ReminderSettings] = None

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    status: Optional[AppointmentStatus] = None
    outcome: Optional[str] = Field(default=None, max_length=1000)
    reason: Optional[str] = Field(default=None, max_length=500)

    @property
    def changes_content(self) -> bool:
        return any(
            getattr(self, name) is not None
            for name in ("title", "description", "type", "priority", "location", "reminder_settings")
        )

    @property
    def changes_time(self) -> bool:
        return self.start_time is not None or self.end_time is not None


class AppointmentCancel(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class CaseSummary(BaseModel):
    id: UUID
    title: str

    class Config:
        from_attributes = True


class Appointment(BaseModel):
    id: UUID

    title: str
    description: Optional[str]

    client_id: UUID
    professional_id: UUID
    case_id: Optional[UUID]
    case: Optional[CaseSummary] = None

    start_time: datetime
    end_time: datetime
    duration_minutes: int

    type: AppointmentType
    priority: AppointmentPriority
    status: AppointmentStatus
    location: Location

    is_recurring: bool
    reminder_settings: ReminderSettings

    booked_by: UUID
    cancelled_by: Optional[UUID]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]
    completed_at: Optional[datetime]
    outcome: Optional[str]

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ConflictingAppointment(BaseModel):
    id: UUID
    title: str
    client_id: UUID
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus

    class Config:
        from_attributes = True


class AppointmentStats(BaseModel):
    period: Dict[str, datetime]
    totals: Dict[str, int]
    by_type: Dict[str, int]
    by_status: Dict[str, int]
    completion_rate: float
    cancellation_rate: float
