"""Appointment router - FastAPI endpoints for booking and lifecycle operations"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...services.notification_service import dispatch_notifications
from ...shared.clock import Clock, get_clock
from .booking_service import BookingService
from .lifecycle_service import AppointmentLifecycleService
from .patients import PatientInfo
from .schemas import (
    AppointmentResponse,
    BookingResponse,
    BookSlotRequest,
    CancelAppointmentRequest,
    RescheduleAppointmentRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_booking_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, clock)


def get_lifecycle_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> AppointmentLifecycleService:
    """Dependency injection for AppointmentLifecycleService"""
    return AppointmentLifecycleService(db, clock)


@router.post("/book", response_model=BookingResponse, status_code=201)
async def book_slot(
    data: BookSlotRequest,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
):
    """Book a time slot (public)"""
    appointment = service.book_slot(
        data.slot_id,
        PatientInfo(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone=data.phone,
            notes=data.notes,
        ),
        service_id=data.service_id,
        status=data.status,
    )
    background_tasks.add_task(dispatch_notifications, list(service.notifications))
    return appointment


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    service: AppointmentLifecycleService = Depends(get_lifecycle_service),
):
    return service.get_appointment(appointment_id)


@router.get("/{appointment_id}/lineage", response_model=list[AppointmentResponse])
async def get_appointment_lineage(
    appointment_id: str,
    service: AppointmentLifecycleService = Depends(get_lifecycle_service),
):
    """Reschedule history, newest first"""
    return service.get_lineage(appointment_id)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: str,
    data: CancelAppointmentRequest,
    background_tasks: BackgroundTasks,
    service: AppointmentLifecycleService = Depends(get_lifecycle_service),
):
    appointment = service.cancel_appointment(appointment_id, data.cancelled_by)
    background_tasks.add_task(dispatch_notifications, list(service.notifications))
    return appointment


@router.post("/cancel/{token}", response_model=AppointmentResponse)
async def cancel_appointment_by_token(
    token: str,
    background_tasks: BackgroundTasks,
    service: AppointmentLifecycleService = Depends(get_lifecycle_service),
):
    """Cancel through the link emailed to the client (public)"""
    appointment = service.cancel_by_token(token)
    background_tasks.add_task(dispatch_notifications, list(service.notifications))
    return appointment


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_draft(
    appointment_id: str,
    background_tasks: BackgroundTasks,
    service: AppointmentLifecycleService = Depends(get_lifecycle_service),
):
    appointment = service.confirm_draft(appointment_id)
    background_tasks.add_task(dispatch_notifications, list(service.notifications))
    return appointment


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: str,
    data: RescheduleAppointmentRequest,
    background_tasks: BackgroundTasks,
    service: AppointmentLifecycleService = Depends(get_lifecycle_service),
):
    """Move an appointment to a new slot; returns the replacement appointment"""
    appointment = service.reschedule_appointment(appointment_id, data.new_slot_id)
    background_tasks.add_task(dispatch_notifications, list(service.notifications))
    return appointment


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: str,
    service: AppointmentLifecycleService = Depends(get_lifecycle_service),
):
    service.delete_appointment(appointment_id)
    return {"message": "Appointment deleted successfully"}
