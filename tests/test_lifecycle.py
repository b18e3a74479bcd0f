"""Tests for the appointment state machine and the interval/location rules."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

import pytest

from legalbook.models.appointment import (
    Appointment,
    AppointmentStatus,
    LocationType,
    TERMINAL_STATUSES,
)
from legalbook.services.scheduling import errors
from legalbook.services.scheduling.access import Operation
from legalbook.services.scheduling.lifecycle import (
    TRANSITIONS,
    apply_transition,
    check_transition,
    operation_for,
    validate_interval,
    validate_location,
)

S = AppointmentStatus
START = datetime(2025, 6, 10, 9, 0)


def _make_appointment(status: AppointmentStatus = S.scheduled) -> Appointment:
    return Appointment(
        id=uuid.uuid4(),
        title="Consultation",
        client_id=uuid.uuid4(),
        professional_id=uuid.uuid4(),
        booked_by=uuid.uuid4(),
        start_time=START,
        end_time=START + timedelta(hours=1),
        status=status,
    )


class TestOperationFor:
    @pytest.mark.parametrize(
        "current, target, operation",
        [
            (S.scheduled, S.confirmed, Operation.confirm),
            (S.scheduled, S.in_progress, Operation.start),
            (S.scheduled, S.cancelled, Operation.cancel),
            (S.scheduled, S.no_show, Operation.mark_no_show),
            (S.confirmed, S.in_progress, Operation.start),
            (S.confirmed, S.completed, Operation.complete),
            (S.in_progress, S.completed, Operation.complete),
            (S.in_progress, S.cancelled, Operation.cancel),
        ],
    )
    def test_allowed(self, current, target, operation):
        assert operation_for(current, target) == operation

    @pytest.mark.parametrize(
        "current, target",
        [
            (S.confirmed, S.scheduled),
            (S.in_progress, S.scheduled),
            (S.in_progress, S.confirmed),
            (S.in_progress, S.no_show),
            (S.scheduled, S.scheduled),
        ],
    )
    def test_disallowed(self, current, target):
        with pytest.raises(errors.ValidationError) as exc_info:
            operation_for(current, target)

        assert exc_info.value.rule == "allowed_transition"

    @pytest.mark.parametrize("current", sorted(TERMINAL_STATUSES))
    @pytest.mark.parametrize("target", list(S))
    def test_terminal_is_final(self, current, target):
        with pytest.raises(errors.FinalizedStateError) as exc_info:
            operation_for(current, target)

        assert exc_info.value.status == current

    def test_terminal_states_have_no_outgoing_edges(self):
        assert not TERMINAL_STATUSES & set(TRANSITIONS)


class TestApplyTransition:
    def test_cancel_records_audit_fields(self):
        appt = _make_appointment()
        actor = uuid.uuid4()
        now = datetime(2025, 6, 9, 12, 0)

        apply_transition(appt, S.cancelled, actor, now, reason="Client travelling")

        assert appt.status == S.cancelled
        assert appt.cancelled_by == actor
        assert appt.cancelled_at == now
        assert appt.cancellation_reason == "Client travelling"

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_cancel_requires_reason(self, reason):
        appt = _make_appointment()

        with pytest.raises(errors.ValidationError) as exc_info:
            apply_transition(appt, S.cancelled, uuid.uuid4(), START, reason=reason)

        assert exc_info.value.field == "reason"
        assert appt.status == S.scheduled

    def test_complete_records_outcome(self):
        appt = _make_appointment(S.in_progress)
        now = START + timedelta(minutes=55)

        apply_transition(appt, S.completed, uuid.uuid4(), now, outcome="Advised to settle")

        assert appt.status == S.completed
        assert appt.outcome == "Advised to settle"
        assert appt.completed_at == now

    def test_complete_requires_outcome(self):
        appt = _make_appointment(S.in_progress)

        with pytest.raises(errors.ValidationError) as exc_info:
            apply_transition(appt, S.completed, uuid.uuid4(), START)

        assert exc_info.value.rule == "outcome_required"

    def test_no_show_after_start(self):
        appt = _make_appointment()

        apply_transition(appt, S.no_show, uuid.uuid4(), START + timedelta(minutes=20))

        assert appt.status == S.no_show

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(minutes=-5)])
    def test_no_show_before_start_rejected(self, offset):
        appt = _make_appointment()

        with pytest.raises(errors.ValidationError) as exc_info:
            apply_transition(appt, S.no_show, uuid.uuid4(), START + offset)

        assert exc_info.value.rule == "no_show_after_start"

    def test_confirm_only_changes_status(self):
        appt = _make_appointment()

        apply_transition(appt, S.confirmed, uuid.uuid4(), START)

        assert appt.status == S.confirmed
        assert appt.cancelled_at is None
        assert appt.completed_at is None


class TestCheckTransition:
    def test_reports_without_changing(self):
        appt = _make_appointment()

        with pytest.raises(errors.ValidationError):
            check_transition(appt, S.completed, START)

        assert appt.status == S.scheduled
        assert appt.outcome is None

    def test_valid_move_changes_nothing(self):
        appt = _make_appointment()

        check_transition(appt, S.cancelled, START, reason="Travelling")

        assert appt.status == S.scheduled
        assert appt.cancelled_at is None


class TestValidateInterval:
    def test_valid(self):
        validate_interval(START, START + timedelta(hours=4), 240, now=START - timedelta(days=1))

    @pytest.mark.parametrize("end", [START, START - timedelta(minutes=1)])
    def test_end_after_start(self, end):
        with pytest.raises(errors.ValidationError) as exc_info:
            validate_interval(START, end, 240)

        assert (exc_info.value.field, exc_info.value.rule) == ("end_time", "end_after_start")

    def test_max_duration(self):
        with pytest.raises(errors.ValidationError) as exc_info:
            validate_interval(START, START + timedelta(minutes=241), 240)

        assert exc_info.value.rule == "max_duration"

    def test_past_start_rejected_when_now_given(self):
        with pytest.raises(errors.ValidationError) as exc_info:
            validate_interval(START, START + timedelta(hours=1), 240, now=START)

        assert (exc_info.value.field, exc_info.value.rule) == ("start_time", "future_start")

    def test_past_start_ignored_without_now(self):
        validate_interval(START, START + timedelta(hours=1), 240)


class TestValidateLocation:
    def test_office_needs_nothing(self):
        validate_location(LocationType.office, None, None)

    def test_virtual_needs_link(self):
        with pytest.raises(errors.ValidationError) as exc_info:
            validate_location(LocationType.virtual, None, None)

        assert exc_info.value.field == "location.meeting_link"

    @pytest.mark.parametrize("location_type", [LocationType.client_location, LocationType.other])
    def test_address_required(self, location_type):
        with pytest.raises(errors.ValidationError):
            validate_location(location_type, None, None)

        validate_location(location_type, "Kenyatta Ave 12", None)
