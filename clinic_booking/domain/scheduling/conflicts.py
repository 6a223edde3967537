"""
Active-appointment predicate shared by every conflict check.

An appointment blocks time unless it is cancelled, rescheduled, or a draft
older than the draft expiry window. Slot generation, booking validation and
the final pre-insert check all go through ``active_appointment_clause`` so
they can never disagree.
"""

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import and_, not_
from sqlalchemy.orm import Session

from ...config import DRAFT_EXPIRY_MINUTES
from ...models import STATUS_CANCELLED, STATUS_DRAFT, STATUS_RESCHEDULED, Appointment

INACTIVE_STATUSES = (STATUS_CANCELLED, STATUS_RESCHEDULED)


def draft_expiry_cutoff(now: datetime) -> datetime:
    """Drafts created at or before this instant are expired"""
    return now - timedelta(minutes=DRAFT_EXPIRY_MINUTES)


def active_appointment_clause(now: datetime):
    cutoff = draft_expiry_cutoff(now)
    return and_(
        Appointment.status.notin_(INACTIVE_STATUSES),
        not_(and_(Appointment.status == STATUS_DRAFT, Appointment.created_at <= cutoff)),
    )


def is_active_appointment(appointment: Appointment, now: datetime) -> bool:
    """In-memory mirror of ``active_appointment_clause`` for a loaded row"""
    if appointment.status in INACTIVE_STATUSES:
        return False
    if appointment.status == STATUS_DRAFT:
        return appointment.created_at > draft_expiry_cutoff(now)
    return True


def find_conflicting_appointments(
    db: Session,
    professional_id: str,
    appointment_date: date,
    start_time: str,
    end_time: str,
    now: datetime,
    exclude_appointment_id: Optional[str] = None,
) -> list[Appointment]:
    """Active appointments of the professional overlapping [start_time, end_time)"""
    # Zero-padded HH:MM strings order the same way as minutes
    query = db.query(Appointment).filter(
        Appointment.professional_id == professional_id,
        Appointment.appointment_date == appointment_date,
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
        active_appointment_clause(now),
    )
    if exclude_appointment_id:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.all()
