"""Appointment domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator, model_validator

from ...shared.validators import validate_email, validate_phone


class PatientContact(BaseModel):
    """Contact details shared by booking and waitlist requests"""

    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        if v:
            return validate_email(v)
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone_field(cls, v):
        if v:
            return validate_phone(v)
        return v


class BookSlotRequest(PatientContact):
    slot_id: str
    service_id: Optional[str] = None
    status: Literal["draft", "confirmed"] = "confirmed"

    @model_validator(mode="after")
    def require_contact(self):
        if not self.email and not self.phone:
            raise ValueError("An email or phone number is required")
        return self


class CancelAppointmentRequest(BaseModel):
    cancelled_by: Literal["client", "professional"]


class RescheduleAppointmentRequest(BaseModel):
    new_slot_id: str


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: str
    professional_id: str
    patient_id: str
    time_slot_id: Optional[str] = None
    professional_service_id: Optional[str] = None
    rescheduled_from_id: Optional[str] = None
    appointment_date: date
    start_time: str
    end_time: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    status: str
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    rescheduled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookingResponse(AppointmentResponse):
    """Returned to the booking client only; carries the self-service cancellation token"""

    cancellation_token: Optional[str] = None
