"""Appointment state machine and the time/location rules every write goes through."""
import uuid
from datetime import datetime, timedelta
from typing import Optional

from legalbook.models.appointment import (
    Appointment,
    AppointmentStatus,
    LocationType,
    TERMINAL_STATUSES,
)
from . import errors
from .access import Operation

S = AppointmentStatus

TRANSITIONS: dict[AppointmentStatus, dict[AppointmentStatus, Operation]] = {
    S.scheduled: {
        S.confirmed: Operation.confirm,
        S.in_progress: Operation.start,
        S.completed: Operation.complete,
        S.cancelled: Operation.cancel,
        S.no_show: Operation.mark_no_show,
    },
    S.confirmed: {
        S.in_progress: Operation.start,
        S.completed: Operation.complete,
        S.cancelled: Operation.cancel,
        S.no_show: Operation.mark_no_show,
    },
    S.in_progress: {
        S.completed: Operation.complete,
        S.cancelled: Operation.cancel,
    },
}


def operation_for(current: AppointmentStatus, target: AppointmentStatus) -> Operation:
    """The operation a move from ``current`` to ``target`` represents."""
    if current in TERMINAL_STATUSES:
        raise errors.FinalizedStateError(current)

    operation = TRANSITIONS.get(current, {}).get(target)
    if operation is None:
        raise errors.ValidationError(
            f"Cannot change status from {current.value} to {target.value}",
            field="status",
            rule="allowed_transition",
        )
    return operation


def validate_interval(
    start: datetime,
    end: datetime,
    max_minutes: int,
    now: Optional[datetime] = None,
) -> None:
    """Ordering and duration rules; pass ``now`` to also require a future start."""
    if end <= start:
        raise errors.ValidationError(
            "End time must be after start time",
            field="end_time",
            rule="end_after_start",
        )
    if end - start > timedelta(minutes=max_minutes):
        raise errors.ValidationError(
            f"Appointment duration cannot exceed {max_minutes // 60} hours",
            field="end_time",
            rule="max_duration",
        )
    if now is not None and start <= now:
        raise errors.ValidationError(
            "Cannot schedule appointments in the past",
            field="start_time",
            rule="future_start",
        )


def validate_location(
    location_type: LocationType,
    address: Optional[str],
    meeting_link: Optional[str],
) -> None:
    if location_type == LocationType.virtual and not meeting_link:
        raise errors.ValidationError(
            "Virtual appointments need a meeting link",
            field="location.meeting_link",
            rule="location_detail",
        )
    if location_type in (LocationType.client_location, LocationType.other) and not address:
        raise errors.ValidationError(
            f"{location_type.value} appointments need an address",
            field="location.address",
            rule="location_detail",
        )


def check_transition(
    appointment: Appointment,
    target: AppointmentStatus,
    now: datetime,
    reason: Optional[str] = None,
    outcome: Optional[str] = None,
) -> None:
    """Field requirements of moving ``appointment`` to ``target``; changes nothing."""
    if target == S.completed and (not outcome or not outcome.strip()):
        raise errors.ValidationError(
            "Completing an appointment requires an outcome",
            field="outcome",
            rule="outcome_required",
        )
    if target == S.cancelled and (not reason or not reason.strip()):
        raise errors.ValidationError(
            "Cancelling an appointment requires a reason",
            field="reason",
            rule="reason_required",
        )
    if target == S.no_show and now <= appointment.start_time:
        raise errors.ValidationError(
            "No-show can only be recorded after the start time",
            field="status",
            rule="no_show_after_start",
        )


def apply_transition(
    appointment: Appointment,
    target: AppointmentStatus,
    actor_id: uuid.UUID,
    now: datetime,
    reason: Optional[str] = None,
    outcome: Optional[str] = None,
) -> None:
    """Move ``appointment`` to ``target`` in place, filling the audit fields.

    The caller has already checked the move with ``operation_for`` and
    authorized the resulting operation.
    """
    check_transition(appointment, target, now, reason=reason, outcome=outcome)

    if target == S.completed:
        appointment.outcome = outcome
        appointment.completed_at = now
    elif target == S.cancelled:
        appointment.cancellation_reason = reason
        appointment.cancelled_by = actor_id
        appointment.cancelled_at = now

    appointment.status = target
