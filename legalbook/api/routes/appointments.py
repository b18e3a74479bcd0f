from datetime import datetime
from typing import Any, List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
import uuid

from legalbook.api import deps
from legalbook.models.appointment import Appointment, AppointmentStatus, AppointmentType
from legalbook.schemas import appointment as appointment_schemas
from legalbook.services.calendar import AppointmentQuery
from legalbook.services.notifications import NotificationDispatcher
from legalbook.services.scheduling.access import Caller
from legalbook.services.scheduling.service import SchedulingService
from legalbook.services.scheduling.timeutils import to_canonical

router = APIRouter()


def _serialize(service: SchedulingService, appointment: Appointment) -> appointment_schemas.Appointment:
    out = appointment_schemas.Appointment.model_validate(appointment)
    case = service.describe_case(appointment.case_id)
    if case:
        out.case = appointment_schemas.CaseSummary(id=case.id, title=case.title)
    return out


def _notify(
    background_tasks: BackgroundTasks,
    notifier: NotificationDispatcher,
    event: str,
    out: appointment_schemas.Appointment,
) -> None:
    background_tasks.add_task(notifier.dispatch, event, out.model_dump(mode="json"))


@router.post("", response_model=appointment_schemas.Appointment, status_code=status.HTTP_201_CREATED)
def create_appointment(
    *,
    appointment_in: appointment_schemas.AppointmentCreate,
    background_tasks: BackgroundTasks,
    service: SchedulingService = Depends(deps.get_scheduling_service),
    notifier: NotificationDispatcher = Depends(deps.get_notifier),
    caller: Caller = Depends(deps.get_current_caller),
) -> Any:
    """
    Book an appointment. Clients book for themselves, professionals on
    their own calendar, scheduling admins on behalf of either.
    """
    appointment = service.book(caller, appointment_in)
    out = _serialize(service, appointment)
    _notify(background_tasks, notifier, "appointment.booked", out)
    return out

@router.get("", response_model=List[appointment_schemas.Appointment])
def read_appointments(
    *,
    status_in: Optional[List[AppointmentStatus]] = Query(default=None, alias="status"),
    type_in: Optional[List[AppointmentType]] = Query(default=None, alias="type"),
    search: Optional[str] = Query(default=None, max_length=100),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    service: SchedulingService = Depends(deps.get_scheduling_service),
    caller: Caller = Depends(deps.get_current_caller),
) -> Any:
    """
    List appointments visible to the caller: clients see their own,
    professionals their calendar, scheduling admins everything.
    """
    query = AppointmentQuery(
        statuses=status_in or [],
        types=type_in or [],
        search=search or None,
        start_date=to_canonical(start_date, service.tz) if start_date else None,
        end_date=to_canonical(end_date, service.tz) if end_date else None,
        skip=skip,
        limit=limit,
    )
    return [_serialize(service, appointment) for appointment in service.list(caller, query)]

@router.get("/stats", response_model=appointment_schemas.AppointmentStats)
def read_appointment_stats(
    *,
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    service: SchedulingService = Depends(deps.get_scheduling_service),
    caller: Caller = Depends(deps.get_current_caller),
) -> Any:
    """
    Totals and breakdowns for the caller's appointments, current month by default.
    """
    return service.statistics(caller, start_date, end_date)

@router.get("/{id}", response_model=appointment_schemas.Appointment)
def read_appointment(
    *,
    id: uuid.UUID,
    service: SchedulingService = Depends(deps.get_scheduling_service),
    caller: Caller = Depends(deps.get_current_caller),
) -> Any:
    appointment = service.get(caller, id)
    return _serialize(service, appointment)

@router.put("/{id}", response_model=appointment_schemas.Appointment)
def update_appointment(
    *,
    id: uuid.UUID,
    appointment_in: appointment_schemas.AppointmentUpdate,
    background_tasks: BackgroundTasks,
    service: SchedulingService = Depends(deps.get_scheduling_service),
    notifier: NotificationDispatcher = Depends(deps.get_notifier),
    caller: Caller = Depends(deps.get_current_caller),
) -> Any:
    """
    Edit content, move the time slot, or change status. Time changes go
    through the same validation and conflict checks as a new booking.
    """
    previous = service.get(caller, id).status
    appointment = service.update(caller, id, appointment_in)
    out = _serialize(service, appointment)
    event = f"appointment.{out.status.value}" if out.status != previous else "appointment.updated"
    _notify(background_tasks, notifier, event, out)
    return out

@router.put("/{id}/cancel", response_model=appointment_schemas.Appointment)
def cancel_appointment(
    *,
    id: uuid.UUID,
    cancel_in: appointment_schemas.AppointmentCancel,
    background_tasks: BackgroundTasks,
    service: SchedulingService = Depends(deps.get_scheduling_service),
    notifier: NotificationDispatcher = Depends(deps.get_notifier),
    caller: Caller = Depends(deps.get_current_caller),
) -> Any:
    """
    Cancel an appointment. Open to the client, the professional and admins.
    """
    appointment = service.cancel(caller, id, cancel_in.reason)
    out = _serialize(service, appointment)
    _notify(background_tasks, notifier, "appointment.cancelled", out)
    return out
