import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query

from legalbook.api import deps
from legalbook.core.config import settings
from legalbook.schemas.availability import AvailabilityOut, Slot
from legalbook.services.scheduling.access import Caller
from legalbook.services.scheduling.service import SchedulingService


router = APIRouter()


@router.get("/{professional_id}", response_model=AvailabilityOut)
def get_availability(
    professional_id: uuid.UUID,
    day: date = Query(..., alias="date"),
    duration: int = Query(default=60),
    service: SchedulingService = Depends(deps.get_scheduling_service),
    caller: Caller = Depends(deps.get_current_caller),
):
    slots = service.available_slots(professional_id, day, duration)

    return AvailabilityOut(
        professional_id=professional_id,
        date=day,
        duration=duration,
        timezone=settings.TIMEZONE,
        slots=[
            Slot(start=s.start, end=s.end, formatted_time=s.formatted_time)
            for s in slots
        ],
    )
