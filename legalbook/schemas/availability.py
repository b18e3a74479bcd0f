import datetime as dt
from uuid import UUID
from pydantic import BaseModel
from typing import List


class Slot(BaseModel):
    start: dt.datetime
    end: dt.datetime
    formatted_time: str

    class Config:
        from_attributes = True


class AvailabilityOut(BaseModel):
    professional_id: UUID
    date: dt.date
    duration: int
    timezone: str
    slots: List[Slot]
