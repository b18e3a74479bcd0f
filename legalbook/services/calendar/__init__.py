from typing import Optional

from sqlalchemy.orm import Session

from legalbook.core.config import settings
from .base import AppointmentQuery, CalendarStore
from .memory import InMemoryCalendarStore
from .sql import SqlCalendarStore


def create_shared_store() -> Optional[CalendarStore]:
    """The process-wide store for backends that live outside the database.

    Called once when the app is built; ``None`` means each request gets a
    store over its own session.
    """
    if settings.CALENDAR_STORE == "memory":
        return InMemoryCalendarStore()
    return None


def get_calendar_store(db: Session, shared: Optional[CalendarStore] = None) -> CalendarStore:
    if shared is not None:
        return shared
    return SqlCalendarStore(db)
