"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date

from pydantic import BaseModel


class SlotResponse(BaseModel):
    """A bookable slot"""

    id: str
    professional_id: str
    slot_date: date
    start_time: str
    end_time: str
    duration: int

    class Config:
        from_attributes = True
