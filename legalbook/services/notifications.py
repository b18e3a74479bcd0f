"""Hand-off of finalized appointment records to the notification service.

Dispatch runs after the response is sent (FastAPI background task), so
delivery problems never affect a booking.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any

from legalbook.core.config import settings

logger = logging.getLogger(__name__)


class NotificationDispatcher(ABC):

    @abstractmethod
    def dispatch(self, event: str, appointment: dict[str, Any]) -> None:
        """``appointment`` is the JSON-ready response record, reminder settings included."""
        pass


class LoggingDispatcher(NotificationDispatcher):

    def dispatch(self, event, appointment):
        logger.info(
            "Notification %s: appointment=%s client=%s professional=%s reminders=%s",
            event,
            appointment.get("id"),
            appointment.get("client_id"),
            appointment.get("professional_id"),
            appointment.get("reminder_settings"),
        )


def get_dispatcher() -> NotificationDispatcher:
    if settings.NOTIFICATION_BACKEND != "log":
        logger.warning(
            "Unknown NOTIFICATION_BACKEND %r, falling back to log", settings.NOTIFICATION_BACKEND
        )
    return LoggingDispatcher()
