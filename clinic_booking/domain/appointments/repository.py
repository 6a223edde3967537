"""Appointment repository - Database operations for appointments, slots and patients"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import STATUS_DRAFT, Appointment, Patient, TimeSlot
from ..scheduling.conflicts import active_appointment_clause


class AppointmentRepository:
    """Repository for appointment database operations. Callers own the transaction."""

    @staticmethod
    def get_appointment(db: Session, appointment_id: str, lock: bool = False) -> Optional[Appointment]:
        query = db.query(Appointment).filter(Appointment.id == appointment_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_by_cancellation_token(db: Session, token: str, lock: bool = False) -> Optional[Appointment]:
        query = db.query(Appointment).filter(Appointment.cancellation_token == token)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_successors(db: Session, appointment_id: str, lock: bool = False) -> list[Appointment]:
        """Appointments created by rescheduling the given one"""
        query = db.query(Appointment).filter(Appointment.rescheduled_from_id == appointment_id)
        if lock:
            query = query.with_for_update()
        return query.all()

    @staticmethod
    def get_parent_id(db: Session, appointment_id: str) -> Optional[str]:
        return (
            db.query(Appointment.rescheduled_from_id)
            .filter(Appointment.id == appointment_id)
            .scalar()
        )

    @staticmethod
    def create_appointment(db: Session, **appointment_data) -> Appointment:
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def expired_draft_slot_ids(db: Session, cutoff: datetime) -> list[str]:
        rows = (
            db.query(Appointment.time_slot_id)
            .filter(
                Appointment.status == STATUS_DRAFT,
                Appointment.created_at <= cutoff,
                Appointment.time_slot_id.isnot(None),
            )
            .distinct()
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def count_expired_drafts(db: Session, cutoff: datetime) -> int:
        return (
            db.query(Appointment)
            .filter(Appointment.status == STATUS_DRAFT, Appointment.created_at <= cutoff)
            .count()
        )


class SlotRepository:
    """Writes against materialized time slots"""

    @staticmethod
    def insert_if_absent(
        db: Session,
        slot_id: str,
        professional_id: str,
        slot_date: date,
        start_time: str,
        end_time: str,
        created_at: datetime,
    ) -> None:
        """INSERT ... ON CONFLICT DO NOTHING; a concurrent insert of the same id is not an error"""
        values = {
            "id": slot_id,
            "professional_id": professional_id,
            "slot_date": slot_date,
            "start_time": start_time,
            "end_time": end_time,
            "is_booked": False,
            "created_at": created_at,
        }
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            try:
                with db.begin_nested():
                    db.add(TimeSlot(**values))
            except IntegrityError:
                # Materialized by a concurrent request
                pass
            return

        stmt = insert(TimeSlot).values(**values).on_conflict_do_nothing(index_elements=["id"])
        db.execute(stmt)

    @staticmethod
    def release(db: Session, slot_id: str, now: datetime) -> int:
        """Mark a slot free unless an active appointment still references it"""
        still_held = (
            db.query(Appointment.id)
            .filter(Appointment.time_slot_id == slot_id, active_appointment_clause(now))
            .exists()
        )
        stmt = (
            update(TimeSlot)
            .where(TimeSlot.id == slot_id, TimeSlot.is_booked.is_(True), ~still_held)
            .values(is_booked=False)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount


class PatientRepository:
    @staticmethod
    def find_by_contact(
        db: Session,
        professional_id: str,
        clinic_id: Optional[str],
        email: Optional[str],
        phone: Optional[str],
    ) -> list[Patient]:
        """Patients in the clinic (or professional) scope sharing the email or phone"""
        contact_filters = []
        if email:
            contact_filters.append(Patient.email == email)
        if phone:
            contact_filters.append(Patient.phone == phone)
        if not contact_filters:
            return []

        query = db.query(Patient)
        if clinic_id:
            query = query.filter(Patient.clinic_id == clinic_id)
        else:
            query = query.filter(Patient.professional_id == professional_id)
        return (
            query.filter(or_(*contact_filters))
            .order_by(Patient.created_at, Patient.id)
            .with_for_update()
            .all()
        )

    @staticmethod
    def create_patient(db: Session, **patient_data) -> Patient:
        patient = Patient(**patient_data)
        db.add(patient)
        db.flush()
        return patient
