"""Shared validation utilities for contact details and times of day"""

import re
from typing import Optional

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a North American number to E.164 (+1XXXXXXXXXX).

    Patients are matched on phone, so every stored number goes through here.
    Raises ValueError for anything that is not 10 digits after dropping a
    leading country code.
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits")
    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """Trim and lower-case an email address; raises ValueError when malformed"""
    if not email:
        return email

    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")
    return email


def validate_time_of_day(value: Optional[str]) -> Optional[str]:
    """Require zero-padded 24h HH:MM"""
    if value is None:
        return value
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must use HH:MM format")
    return value
