"""Schedule store - read access to professionals, schedules, breaks and slots"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    Appointment,
    Professional,
    ProfessionalBreak,
    ProfessionalSchedule,
    ProfessionalService,
    TimeSlot,
)
from .conflicts import active_appointment_clause


class ScheduleRepository:
    """Repository for schedule and slot database operations"""

    @staticmethod
    def get_professional(db: Session, professional_id: str, lock: bool = False) -> Optional[Professional]:
        query = db.query(Professional).filter(Professional.id == professional_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_service(db: Session, professional_id: str, service_id: str) -> Optional[ProfessionalService]:
        return (
            db.query(ProfessionalService)
            .filter(
                ProfessionalService.id == service_id,
                ProfessionalService.professional_id == professional_id,
            )
            .first()
        )

    @staticmethod
    def get_schedule_blocks(
        db: Session, professional_id: str, day_of_week: Optional[int] = None
    ) -> list[ProfessionalSchedule]:
        """Available weekly blocks ordered by weekday then start"""
        query = db.query(ProfessionalSchedule).filter(
            ProfessionalSchedule.professional_id == professional_id,
            ProfessionalSchedule.is_available.is_(True),
        )
        if day_of_week is not None:
            query = query.filter(ProfessionalSchedule.day_of_week == day_of_week)
        return query.order_by(ProfessionalSchedule.day_of_week, ProfessionalSchedule.start_time).all()

    @staticmethod
    def get_breaks(
        db: Session, professional_id: str, day_of_week: Optional[int] = None
    ) -> list[ProfessionalBreak]:
        query = db.query(ProfessionalBreak).filter(ProfessionalBreak.professional_id == professional_id)
        if day_of_week is not None:
            query = query.filter(ProfessionalBreak.day_of_week == day_of_week)
        return query.all()

    @staticmethod
    def get_active_appointments(
        db: Session,
        professional_id: str,
        from_date: date,
        to_date: date,
        now: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.appointment_date >= from_date,
            Appointment.appointment_date <= to_date,
            active_appointment_clause(now),
        )
        if exclude_appointment_id:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.all()

    @staticmethod
    def get_booked_slots(db: Session, professional_id: str, from_date: date, to_date: date) -> list[TimeSlot]:
        return (
            db.query(TimeSlot)
            .filter(
                TimeSlot.professional_id == professional_id,
                TimeSlot.slot_date >= from_date,
                TimeSlot.slot_date <= to_date,
                TimeSlot.is_booked.is_(True),
            )
            .all()
        )

    @staticmethod
    def get_slot(db: Session, slot_id: str, lock: bool = False) -> Optional[TimeSlot]:
        query = db.query(TimeSlot).filter(TimeSlot.id == slot_id)
        if lock:
            query = query.with_for_update()
        return query.first()
