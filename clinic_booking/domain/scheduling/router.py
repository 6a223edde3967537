"""Scheduling router - public availability endpoint"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...shared.clock import Clock, get_clock
from .availability_service import list_available_slots
from .schemas import SlotResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling", tags=["Scheduling"])


@router.get("/professionals/{professional_id}/slots", response_model=list[SlotResponse])
async def get_available_slots(
    professional_id: str,
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    service_id: Optional[str] = Query(None),
    exclude_appointment_id: Optional[str] = Query(None),
    skip_min_advance: bool = Query(False),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """List bookable slots for a professional, ordered by date then time"""
    if from_date and to_date and to_date < from_date:
        raise HTTPException(status_code=400, detail="to_date must not be before from_date")

    slots = list_available_slots(
        db,
        professional_id,
        from_date=from_date,
        to_date=to_date,
        service_id=service_id,
        exclude_appointment_id=exclude_appointment_id,
        skip_min_advance=skip_min_advance,
        clock=clock,
    )
    return [SlotResponse.model_validate(slot) for slot in slots]
