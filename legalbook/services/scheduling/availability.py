import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator

from legalbook.models.user import UserRole
from legalbook.services.calendar import CalendarStore
from legalbook.services.directory import UserDirectory
from . import errors
from .conflicts import intervals_overlap
from .timeutils import Clock, at, format_time_range

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusinessHours:
    opens: time = time(8, 0)
    closes: time = time(18, 0)
    days: frozenset[int] = frozenset({1, 2, 3, 4, 5})
    step_minutes: int = 30
    min_lead_minutes: int = 60
    max_duration_minutes: int = 240

    @classmethod
    def from_settings(cls, settings) -> "BusinessHours":
        return cls(
            opens=settings.BUSINESS_HOURS_START,
            closes=settings.BUSINESS_HOURS_END,
            days=frozenset(settings.BUSINESS_DAYS),
            step_minutes=settings.SLOT_STEP_MINUTES,
            min_lead_minutes=settings.MIN_LEAD_MINUTES,
            max_duration_minutes=settings.MAX_APPOINTMENT_MINUTES,
        )


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime

    @property
    def formatted_time(self) -> str:
        return format_time_range(self.start, self.end)


class AvailabilityCalculator:
    """Open slots of one professional on one day. Read-only."""

    def __init__(
        self,
        store: CalendarStore,
        users: UserDirectory,
        hours: BusinessHours,
        clock: Clock,
    ):
        self.store = store
        self.users = users
        self.hours = hours
        self.clock = clock

    def _check_inputs(self, professional_id: uuid.UUID, duration_minutes: int):
        if duration_minutes <= 0 or duration_minutes > self.hours.max_duration_minutes:
            raise errors.ValidationError(
                f"Duration must be between 1 and {self.hours.max_duration_minutes} minutes",
                field="duration",
                rule="duration_range",
            )

        professional = self.users.resolve_user(professional_id)
        if not professional or professional.role != UserRole.professional or not professional.is_active:
            raise errors.ValidationError(
                "Unknown professional",
                field="professional_id",
                rule="known_professional",
            )

    def compute_slots(
        self,
        professional_id: uuid.UUID,
        day: date,
        duration_minutes: int,
    ) -> Iterator[Slot]:
        """Validate eagerly, then return a one-shot iterator over the slots."""
        self._check_inputs(professional_id, duration_minutes)
        return self._generate(professional_id, day, duration_minutes)

    def _generate(self, professional_id, day, duration_minutes) -> Iterator[Slot]:
        if day.isoweekday() not in self.hours.days:
            return

        opens = at(day, self.hours.opens)
        closes = at(day, self.hours.closes)
        duration = timedelta(minutes=duration_minutes)
        step = timedelta(minutes=self.hours.step_minutes)
        earliest = self.clock() + timedelta(minutes=self.hours.min_lead_minutes)

        busy = [
            (row.start_time, row.end_time)
            for row in self.store.find_overlapping(professional_id, opens, closes)
        ]
        logger.debug(
            "Availability %s on %s: %d busy intervals", professional_id, day, len(busy)
        )

        start = opens
        while start + duration <= closes:
            end = start + duration
            if start > earliest and not any(
                intervals_overlap(start, end, b_start, b_end) for b_start, b_end in busy
            ):
                yield Slot(start=start, end=end)
            start += step
