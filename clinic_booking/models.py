import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .config import (
    DEFAULT_APPOINTMENT_DURATION,
    DEFAULT_BUFFER_TIME,
    DEFAULT_TIMEZONE,
    WAITLIST_CLAIM_HOURS,
)
from .database import Base
from .shared.clock import utcnow


def generate_id():
    """Generate an opaque string identifier"""
    return str(uuid.uuid4())


# Appointment statuses
STATUS_DRAFT = "draft"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
STATUS_RESCHEDULED = "rescheduled"

# Waitlist statuses
WAITLIST_PENDING = "pending"
WAITLIST_NOTIFIED = "notified"
WAITLIST_FULFILLED = "fulfilled"
WAITLIST_EXPIRED = "expired"
WAITLIST_CANCELLED = "cancelled"


class Professional(Base):
    __tablename__ = "professionals"

    id = Column(String(36), primary_key=True, default=generate_id)
    clinic_id = Column(String(36), nullable=True, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    timezone = Column(String(64), default=DEFAULT_TIMEZONE, nullable=False)
    appointment_duration = Column(Integer, default=DEFAULT_APPOINTMENT_DURATION, nullable=False)
    buffer_time = Column(Integer, default=DEFAULT_BUFFER_TIME, nullable=False)
    plan_type = Column(String(20), default="legacy", nullable=False)  # legacy, free, pro
    # Lifetime booking counter, never decremented
    total_appointments_created = Column(Integer, default=0, nullable=False)
    waitlist_enabled = Column(Boolean, default=True, nullable=False)
    waitlist_priority_hours = Column(Integer, default=WAITLIST_CLAIM_HOURS, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    schedules = relationship("ProfessionalSchedule", back_populates="professional")
    breaks = relationship("ProfessionalBreak", back_populates="professional")
    services = relationship("ProfessionalService", back_populates="professional")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ProfessionalSchedule(Base):
    """Recurring weekly availability block"""

    __tablename__ = "professional_schedules"

    id = Column(String(36), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(String(5), nullable=False)  # HH:MM format
    end_time = Column(String(5), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

    professional = relationship("Professional", back_populates="schedules")


class ProfessionalBreak(Base):
    __tablename__ = "professional_breaks"

    id = Column(String(36), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)

    professional = relationship("Professional", back_populates="breaks")


class ProfessionalService(Base):
    __tablename__ = "professional_services"

    id = Column(String(36), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    buffer_time = Column(Integer, nullable=True)  # overrides the professional default when set
    is_visible = Column(Boolean, default=True, nullable=False)

    professional = relationship("Professional", back_populates="services")


class TimeSlot(Base):
    """Materialized slot. Virtual slots only get a row on the first booking attempt."""

    __tablename__ = "time_slots"

    # "<professional_id>-<YYYY-MM-DD>-<HH:MM>" for slots materialized from the schedule
    id = Column(String(255), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False)
    slot_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_booked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (Index("ix_time_slots_professional_date", "professional_id", "slot_date"),)


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=True, index=True)
    clinic_id = Column(String(36), nullable=True, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(20), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    time_slot_id = Column(String(255), ForeignKey("time_slots.id"), nullable=True, index=True)
    professional_service_id = Column(
        String(36), ForeignKey("professional_services.id"), nullable=True
    )
    # Lineage: the appointment this one replaced
    rescheduled_from_id = Column(String(36), ForeignKey("appointments.id"), nullable=True, index=True)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM format
    end_time = Column(String(5), nullable=False)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), default=STATUS_CONFIRMED, nullable=False)  # draft, confirmed, cancelled, rescheduled
    cancelled_by = Column(String(20), nullable=True)  # client, professional
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_token = Column(String(64), unique=True, nullable=True)
    rescheduled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    patient = relationship("Patient")
    time_slot = relationship("TimeSlot")
    rescheduled_from = relationship("Appointment", remote_side=[id])

    __table_args__ = (
        Index("ix_appointments_professional_date", "professional_id", "appointment_date"),
    )


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id = Column(String(36), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False)
    professional_service_id = Column(
        String(36), ForeignKey("professional_services.id"), nullable=True
    )
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=False)
    preferred_date = Column(Date, nullable=False)
    preferred_time_start = Column(String(5), nullable=True)
    preferred_time_end = Column(String(5), nullable=True)
    notes = Column(Text, nullable=True)
    # Single-use; nulled on every terminal transition
    token = Column(String(64), unique=True, nullable=True)
    status = Column(String(20), default=WAITLIST_PENDING, nullable=False)  # pending, notified, fulfilled, expired, cancelled
    notified_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    # The freed window offered to this entry
    available_slot_id = Column(String(255), nullable=True)
    available_date = Column(Date, nullable=True)
    available_start_time = Column(String(5), nullable=True)
    available_end_time = Column(String(5), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_waitlist_professional_status", "professional_id", "status", "created_at"),
    )
