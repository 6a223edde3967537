"""Waitlist router - FastAPI endpoints for joining and claiming freed slots"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...services.notification_service import dispatch_notifications
from ...shared.clock import Clock, get_clock
from ..appointments.schemas import BookingResponse
from .schemas import (
    JoinWaitlistRequest,
    JoinWaitlistResponse,
    WaitlistClaimResponse,
    WaitlistEntryResponse,
)
from .service import WaitlistService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/waitlist", tags=["Waitlist"])


def get_waitlist_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> WaitlistService:
    """Dependency injection for WaitlistService"""
    return WaitlistService(db, clock)


@router.post("", response_model=JoinWaitlistResponse, status_code=201)
async def join_waitlist(
    data: JoinWaitlistRequest,
    background_tasks: BackgroundTasks,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Join a professional's waitlist (public)"""
    entry = service.join_waitlist(
        professional_id=data.professional_id,
        preferred_date=data.preferred_date,
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        email=data.email,
        service_id=data.service_id,
        preferred_time_start=data.preferred_time_start,
        preferred_time_end=data.preferred_time_end,
        notes=data.notes,
    )
    background_tasks.add_task(dispatch_notifications, list(service.notifications))
    return entry


@router.get("/professionals/{professional_id}", response_model=list[WaitlistEntryResponse])
async def list_waitlist_entries(
    professional_id: str,
    status: Optional[str] = Query(None),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Waitlist for a professional, oldest first"""
    return service.list_entries(professional_id, status)


@router.get("/priority/{token}", response_model=WaitlistClaimResponse)
async def get_waitlist_claim(
    token: str,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Details of the slot offered through a priority link (public)"""
    return service.get_claim(token)


@router.post("/priority/{token}/confirm", response_model=BookingResponse)
async def confirm_waitlist_claim(
    token: str,
    background_tasks: BackgroundTasks,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Book the offered slot (public)"""
    appointment = service.confirm_waitlist_claim(token)
    background_tasks.add_task(dispatch_notifications, list(service.notifications))
    return appointment


@router.post("/priority/{token}/release")
async def release_waitlist_claim(
    token: str,
    background_tasks: BackgroundTasks,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Decline the offered slot (public)"""
    service.release_waitlist_claim(token)
    background_tasks.add_task(dispatch_notifications, list(service.notifications))
    return {"message": "Slot released"}


@router.post("/cancel/{token}")
async def cancel_waitlist_entry(
    token: str,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Leave the waitlist (public)"""
    service.cancel_waitlist_entry(token)
    return {"message": "Waitlist entry cancelled"}
