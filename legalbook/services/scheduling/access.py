"""Role-based visibility and mutation rights for appointments.

Every decision goes through one table, ``ROLE_OPERATIONS``; participation
(being the client or the professional of the appointment) is checked on
top of it for non-admin roles.
"""
import enum
import uuid
from dataclasses import dataclass, replace

from legalbook.models.appointment import Appointment
from legalbook.models.user import UserRole
from legalbook.services.calendar import AppointmentQuery
from legalbook.services.directory import DirectoryUser
from . import errors


class Operation(str, enum.Enum):
    book = "book"
    view = "view"
    update = "update"
    cancel = "cancel"
    confirm = "confirm"
    start = "start"
    complete = "complete"
    mark_no_show = "mark_no_show"


ROLE_OPERATIONS: dict[UserRole, frozenset[Operation]] = {
    UserRole.client: frozenset({
        Operation.book,
        Operation.view,
        Operation.update,
        Operation.cancel,
    }),
    UserRole.professional: frozenset(Operation),
    UserRole.admin: frozenset(Operation),
}


@dataclass(frozen=True)
class Caller:
    id: uuid.UUID
    role: UserRole
    can_schedule_appointments: bool = False

    @classmethod
    def from_user(cls, user: DirectoryUser) -> "Caller":
        return cls(
            id=user.id,
            role=user.role,
            can_schedule_appointments=user.can_schedule_appointments,
        )

    @property
    def is_scheduling_admin(self) -> bool:
        return self.role == UserRole.admin and self.can_schedule_appointments


def _role_allows(caller: Caller, operation: Operation) -> bool:
    if caller.role == UserRole.admin and not caller.can_schedule_appointments:
        return False
    return operation in ROLE_OPERATIONS.get(caller.role, frozenset())


def _participates(caller: Caller, client_id: uuid.UUID, professional_id: uuid.UUID) -> bool:
    if caller.role == UserRole.admin:
        return True
    if caller.role == UserRole.client:
        return client_id == caller.id
    if caller.role == UserRole.professional:
        return professional_id == caller.id
    return False


def scope(caller: Caller, query: AppointmentQuery) -> AppointmentQuery:
    """Restrict a listing query to what the caller may see."""
    if caller.role == UserRole.client:
        return replace(query, client_id=caller.id)
    if caller.role == UserRole.professional:
        return replace(query, professional_id=caller.id)
    if caller.is_scheduling_admin:
        return query
    return replace(query, match_nothing=True)


def authorize(caller: Caller, appointment: Appointment, operation: Operation) -> bool:
    return _role_allows(caller, operation) and _participates(
        caller, appointment.client_id, appointment.professional_id
    )


def require(caller: Caller, appointment: Appointment, operation: Operation) -> None:
    if not authorize(caller, appointment, operation):
        raise errors.AuthorizationError(
            f"{caller.role.value} may not {operation.value} this appointment"
        )


def require_booking(caller: Caller, client_id: uuid.UUID, professional_id: uuid.UUID) -> None:
    if not (_role_allows(caller, Operation.book) and _participates(caller, client_id, professional_id)):
        raise errors.AuthorizationError(
            f"{caller.role.value} may not book on behalf of other users"
        )
