"""Scheduling service: booking, listing, updates and status transitions.

Every write runs the same pipeline:

1. access check for the caller's role and participation
2. static rules (time ordering, maximum duration, future start on creation)
3. conflict pre-check, so the caller gets the overlapping appointments
4. the store's atomic conditional write, which re-checks conflicts while
   holding the professional's lock

A write that loses a race at the database is retried once against
current data before surfacing as a ConflictError.
"""
import logging
import uuid
from collections import Counter
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterator, Optional
from zoneinfo import ZoneInfo

from legalbook.models.appointment import Appointment, AppointmentStatus
from legalbook.models.user import UserRole
from legalbook.schemas.appointment import AppointmentCreate, AppointmentUpdate
from legalbook.services.calendar import AppointmentQuery, CalendarStore
from legalbook.services.directory import CaseDirectory, DirectoryCase, UserDirectory
from . import access, errors, lifecycle
from .access import Caller, Operation
from .availability import AvailabilityCalculator, BusinessHours, Slot
from .conflicts import ConflictDetector, ConflictSummary
from .timeutils import Clock, to_canonical

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("title", "description", "type", "priority")


class SchedulingService:

    def __init__(
        self,
        store: CalendarStore,
        users: UserDirectory,
        cases: CaseDirectory,
        hours: BusinessHours,
        tz: ZoneInfo,
        clock: Clock,
    ):
        self.store = store
        self.users = users
        self.cases = cases
        self.hours = hours
        self.tz = tz
        self.clock = clock
        self.detector = ConflictDetector(store)
        self.availability = AvailabilityCalculator(store, users, hours, clock)

    # ── Reads ───────────────────────────────────────────────────────

    def available_slots(self, professional_id: uuid.UUID, day: date, duration_minutes: int) -> Iterator[Slot]:
        return self.availability.compute_slots(professional_id, day, duration_minutes)

    def get(self, caller: Caller, appointment_id: uuid.UUID) -> Appointment:
        appointment = self.store.get(appointment_id)
        if appointment is None:
            raise errors.NotFoundError("Appointment not found")
        access.require(caller, appointment, Operation.view)
        return appointment

    def list(self, caller: Caller, query: AppointmentQuery) -> list[Appointment]:
        return self.store.search(access.scope(caller, query))

    def describe_case(self, case_id: Optional[uuid.UUID]) -> Optional[DirectoryCase]:
        if case_id is None:
            return None
        return self.cases.resolve_case(case_id)

    def statistics(
        self,
        caller: Caller,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict:
        now = self.clock()
        month_start = datetime.combine(now.date().replace(day=1), time.min)
        if start is None:
            start = month_start
        if end is None:
            next_month = (month_start + timedelta(days=32)).replace(day=1)
            end = next_month - timedelta(microseconds=1)
        start = to_canonical(start, self.tz)
        end = to_canonical(end, self.tz)

        base = access.scope(caller, AppointmentQuery(start_date=start, end_date=end, limit=None))
        by_status: Counter = Counter()
        by_type: Counter = Counter()
        for status, type_, count in self.store.tally(base):
            by_status[status.value] += count
            by_type[type_.value] += count

        upcoming_query = replace(
            base,
            start_date=now,
            end_date=None,
            statuses=[AppointmentStatus.scheduled, AppointmentStatus.confirmed],
        )
        upcoming = sum(count for _, _, count in self.store.tally(upcoming_query))

        total = sum(by_status.values())

        def rate(n: int) -> float:
            return round(n / total * 100, 2) if total else 0.0

        return {
            "period": {"start_date": start, "end_date": end},
            "totals": {
                "total": total,
                "scheduled": by_status[AppointmentStatus.scheduled.value],
                "completed": by_status[AppointmentStatus.completed.value],
                "cancelled": by_status[AppointmentStatus.cancelled.value],
                "upcoming": upcoming,
            },
            "by_type": dict(by_type),
            "by_status": dict(by_status),
            "completion_rate": rate(by_status[AppointmentStatus.completed.value]),
            "cancellation_rate": rate(by_status[AppointmentStatus.cancelled.value]),
        }

    # ── Writes ──────────────────────────────────────────────────────

    def book(self, caller: Caller, data: AppointmentCreate) -> Appointment:
        access.require_booking(caller, data.client_id, data.professional_id)
        self._require_participant(data.client_id, UserRole.client, "client_id")
        self._require_participant(data.professional_id, UserRole.professional, "professional_id")
        if data.case_id is not None and self.cases.resolve_case(data.case_id) is None:
            raise errors.ValidationError("Unknown case", field="case_id", rule="known_case")

        start = to_canonical(data.start_time, self.tz)
        end = to_canonical(data.end_time, self.tz)
        lifecycle.validate_interval(start, end, self.hours.max_duration_minutes, now=self.clock())
        lifecycle.validate_location(data.location.type, data.location.address, data.location.meeting_link)
        self._precheck(data.professional_id, start, end)

        appointment = Appointment(
            id=uuid.uuid4(),
            title=data.title,
            description=data.description,
            client_id=data.client_id,
            professional_id=data.professional_id,
            case_id=data.case_id,
            start_time=start,
            end_time=end,
            type=data.type,
            priority=data.priority,
            status=AppointmentStatus.scheduled,
            is_recurring=data.is_recurring,
            reminder_settings=data.reminder_settings.model_dump(mode="json"),
            booked_by=caller.id,
        )
        self._set_location(appointment, data.location)

        appointment = self._guarded_write(
            lambda: self.store.insert_if_free(appointment),
            data.professional_id, start, end,
        )
        logger.info(
            "Appointment booked: id=%s professional=%s start=%s by=%s",
            appointment.id, appointment.professional_id, appointment.start_time, caller.id,
        )
        return appointment

    def update(self, caller: Caller, appointment_id: uuid.UUID, changes: AppointmentUpdate) -> Appointment:
        """Apply content, time and status changes from one request.

        Every rule is checked before anything is written, so a rejected
        update leaves the stored appointment as it was.
        """
        appointment = self.get(caller, appointment_id)
        if changes.changes_content or changes.changes_time:
            access.require(caller, appointment, Operation.update)

        target = self._pending_status(caller, appointment, changes)
        if changes.location is not None:
            location = changes.location
            lifecycle.validate_location(location.type, location.address, location.meeting_link)
        interval = self._pending_interval(appointment, changes)

        def edit(row: Appointment) -> bool:
            return self._apply_content(row, changes)

        if interval is not None:
            appointment = self._reschedule(appointment, *interval, edit=edit)
        if target is not None:
            return self._transition(
                caller, appointment, target,
                reason=changes.reason, outcome=changes.outcome,
                edit=None if interval is not None else edit,
            )
        if interval is None and edit(appointment):
            appointment = self.store.save(appointment)
        return appointment

    def cancel(self, caller: Caller, appointment_id: uuid.UUID, reason: str) -> Appointment:
        return self.transition(caller, appointment_id, AppointmentStatus.cancelled, reason=reason)

    def transition(
        self,
        caller: Caller,
        appointment_id: uuid.UUID,
        target: AppointmentStatus,
        reason: Optional[str] = None,
        outcome: Optional[str] = None,
    ) -> Appointment:
        appointment = self.get(caller, appointment_id)
        return self._transition(caller, appointment, target, reason=reason, outcome=outcome)

    # ── Helpers ─────────────────────────────────────────────────────

    def _require_participant(self, user_id: uuid.UUID, role: UserRole, field: str):
        user = self.users.resolve_user(user_id)
        if not user or user.role != role or not user.is_active:
            raise errors.ValidationError(
                f"{field} must reference an active {role.value}",
                field=field,
                rule=f"known_{role.value}",
            )

    def _precheck(self, professional_id, start, end, exclude_id=None):
        conflicts = self.detector.find_conflicts(professional_id, start, end, exclude_id)
        if conflicts:
            logger.info(
                "Booking conflict for professional=%s %s-%s: %d overlaps",
                professional_id, start, end, len(conflicts),
            )
            raise errors.ConflictError(conflicts)

    def _guarded_write(
        self,
        write: Callable[[], Appointment],
        professional_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Appointment:
        for attempt in (1, 2):
            try:
                return write()
            except errors.ConflictError as exc:
                raise errors.ConflictError(
                    [ConflictSummary.from_appointment(row) for row in exc.conflicts]
                ) from None
            except errors.ConcurrentWriteError:
                if attempt == 2:
                    break
                logger.warning(
                    "Calendar write for professional=%s lost a race, retrying", professional_id
                )
        raise errors.ConflictError(
            self.detector.find_conflicts(professional_id, start, end, exclude_id)
        )

    def _pending_status(
        self, caller: Caller, appointment: Appointment, changes: AppointmentUpdate
    ) -> Optional[AppointmentStatus]:
        target = changes.status
        if target is None or (target == appointment.status and not appointment.is_terminal):
            return None
        access.require(caller, appointment, lifecycle.operation_for(appointment.status, target))
        lifecycle.check_transition(
            appointment, target, self.clock(), reason=changes.reason, outcome=changes.outcome
        )
        return target

    def _pending_interval(
        self, appointment: Appointment, changes: AppointmentUpdate
    ) -> Optional[tuple[datetime, datetime]]:
        if not changes.changes_time:
            return None
        if appointment.is_terminal:
            raise errors.FinalizedStateError(appointment.status)

        start = to_canonical(changes.start_time, self.tz) if changes.start_time else appointment.start_time
        end = to_canonical(changes.end_time, self.tz) if changes.end_time else appointment.end_time
        if (start, end) == (appointment.start_time, appointment.end_time):
            return None

        lifecycle.validate_interval(start, end, self.hours.max_duration_minutes)
        self._precheck(appointment.professional_id, start, end, exclude_id=appointment.id)
        return start, end

    def _reschedule(
        self,
        appointment: Appointment,
        start: datetime,
        end: datetime,
        edit: Optional[Callable[[Appointment], bool]] = None,
    ) -> Appointment:
        # content edits ride along in the same write
        def write() -> Appointment:
            if edit is not None:
                edit(appointment)
            return self.store.reschedule_if_free(appointment, start, end)

        appointment = self._guarded_write(
            write, appointment.professional_id, start, end, exclude_id=appointment.id,
        )
        logger.info("Appointment %s moved to %s-%s", appointment.id, start, end)
        return appointment

    def _transition(
        self,
        caller: Caller,
        appointment: Appointment,
        target: AppointmentStatus,
        reason: Optional[str] = None,
        outcome: Optional[str] = None,
        edit: Optional[Callable[[Appointment], bool]] = None,
    ) -> Appointment:
        for attempt in (1, 2):
            expected = appointment.status
            operation = lifecycle.operation_for(expected, target)
            access.require(caller, appointment, operation)
            if edit is not None:
                edit(appointment)
            lifecycle.apply_transition(
                appointment, target, caller.id, self.clock(), reason=reason, outcome=outcome
            )
            try:
                appointment = self.store.save_transition(appointment, expected)
            except errors.ConcurrentWriteError:
                if attempt == 2:
                    raise
                logger.warning("Status of %s changed concurrently, re-reading", appointment.id)
                appointment = self.get(caller, appointment.id)
                continue

            logger.info(
                "Appointment %s: %s -> %s by %s",
                appointment.id, expected.value, target.value, caller.id,
            )
            return appointment

    @staticmethod
    def _set_location(appointment: Appointment, location) -> None:
        appointment.location_type = location.type
        appointment.location_address = location.address
        appointment.location_room = location.room
        appointment.location_meeting_link = location.meeting_link
        appointment.location_instructions = location.instructions

    def _apply_content(self, appointment: Appointment, changes: AppointmentUpdate) -> bool:
        changed = False
        for field in CONTENT_FIELDS:
            value = getattr(changes, field)
            if value is not None and value != getattr(appointment, field):
                setattr(appointment, field, value)
                changed = True

        if changes.location is not None:
            self._set_location(appointment, changes.location)
            changed = True

        if changes.reminder_settings is not None:
            appointment.reminder_settings = changes.reminder_settings.model_dump(mode="json")
            changed = True

        return changed
