"""Waitlist domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...shared.validators import validate_email, validate_phone, validate_time_of_day


class JoinWaitlistRequest(BaseModel):
    professional_id: str
    service_id: Optional[str] = None
    preferred_date: date
    preferred_time_start: Optional[str] = None
    preferred_time_end: Optional[str] = None
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: str
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
        return validate_phone(v)

    @field_validator("preferred_time_start", "preferred_time_end")
    @classmethod
    def validate_time_field(cls, v):
        return validate_time_of_day(v)

    @model_validator(mode="after")
    def validate_time_range(self):
        if self.preferred_time_start and self.preferred_time_end:
            if self.preferred_time_end <= self.preferred_time_start:
                raise ValueError("preferred_time_end must be after preferred_time_start")
        return self


class WaitlistEntryResponse(BaseModel):
    """Professional-facing view of an entry"""

    id: str
    professional_id: str
    professional_service_id: Optional[str] = None
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: str
    preferred_date: date
    preferred_time_start: Optional[str] = None
    preferred_time_end: Optional[str] = None
    status: str
    notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    available_date: Optional[date] = None
    available_start_time: Optional[str] = None
    available_end_time: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JoinWaitlistResponse(WaitlistEntryResponse):
    """Returned to the client that joined; the token manages the entry"""

    token: Optional[str] = None


class WaitlistClaimResponse(BaseModel):
    """What the priority link shows"""

    professional_id: str
    professional_service_id: Optional[str] = None
    first_name: str
    available_date: date
    available_start_time: str
    available_end_time: str
    expires_at: datetime

    class Config:
        from_attributes = True
