"""
Notification Service
Services decide that a notification is due and queue a NotificationEvent;
delivery happens after the transaction commits so a failed email can never
undo a booking.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .. import email_service
from ..models import Appointment, Professional, WaitlistEntry
from ..security_utils import mask_email

logger = logging.getLogger(__name__)

APPOINTMENT_BOOKED = "appointment_booked"
APPOINTMENT_CANCELLED = "appointment_cancelled"
WAITLIST_JOINED = "waitlist_joined"
WAITLIST_SLOT_AVAILABLE = "waitlist_slot_available"
WAITLIST_CLAIM_EXPIRED = "waitlist_claim_expired"

EMAIL_SENDERS = {
    APPOINTMENT_BOOKED: email_service.send_appointment_booked_email,
    APPOINTMENT_CANCELLED: email_service.send_appointment_cancelled_email,
    WAITLIST_JOINED: email_service.send_waitlist_joined_email,
    WAITLIST_SLOT_AVAILABLE: email_service.send_waitlist_slot_available_email,
    WAITLIST_CLAIM_EXPIRED: email_service.send_waitlist_claim_expired_email,
}


@dataclass
class NotificationEvent:
    kind: str
    recipient_email: Optional[str]
    recipient_name: str
    context: dict = field(default_factory=dict)


# ============================================================================
# EVENT BUILDERS
# ============================================================================


def appointment_booked_event(appointment: Appointment, professional: Professional) -> NotificationEvent:
    return NotificationEvent(
        kind=APPOINTMENT_BOOKED,
        recipient_email=appointment.email,
        recipient_name=appointment.first_name,
        context={
            "professional_name": professional.full_name,
            "appointment_date": appointment.appointment_date.isoformat(),
            "start_time": appointment.start_time,
            "end_time": appointment.end_time,
            "cancellation_token": appointment.cancellation_token,
        },
    )


def appointment_cancelled_event(appointment: Appointment, professional: Professional) -> NotificationEvent:
    return NotificationEvent(
        kind=APPOINTMENT_CANCELLED,
        recipient_email=appointment.email,
        recipient_name=appointment.first_name,
        context={
            "professional_name": professional.full_name,
            "appointment_date": appointment.appointment_date.isoformat(),
            "start_time": appointment.start_time,
            "cancelled_by": appointment.cancelled_by,
        },
    )


def waitlist_joined_event(entry: WaitlistEntry, professional: Professional) -> NotificationEvent:
    return NotificationEvent(
        kind=WAITLIST_JOINED,
        recipient_email=entry.email,
        recipient_name=entry.first_name,
        context={
            "professional_name": professional.full_name,
            "preferred_date": entry.preferred_date.isoformat(),
        },
    )


def waitlist_slot_available_event(
    entry: WaitlistEntry, professional: Professional, expires_label: str
) -> NotificationEvent:
    return NotificationEvent(
        kind=WAITLIST_SLOT_AVAILABLE,
        recipient_email=entry.email,
        recipient_name=entry.first_name,
        context={
            "professional_name": professional.full_name,
            "appointment_date": entry.available_date.isoformat(),
            "start_time": entry.available_start_time,
            "end_time": entry.available_end_time,
            "expires_at": expires_label,
            "token": entry.token,
        },
    )


def waitlist_claim_expired_event(entry: WaitlistEntry) -> NotificationEvent:
    return NotificationEvent(
        kind=WAITLIST_CLAIM_EXPIRED,
        recipient_email=entry.email,
        recipient_name=entry.first_name,
        context={
            "appointment_date": entry.available_date.isoformat() if entry.available_date else "",
            "start_time": entry.available_start_time or "",
        },
    )


# ============================================================================
# DELIVERY
# ============================================================================


async def send_notification(event: NotificationEvent) -> bool:
    """Deliver one event. Failures are logged, never raised."""
    if not event.recipient_email:
        logger.debug(f"⚠️ No email address for {event.kind} notification to {event.recipient_name}")
        return False

    sender = EMAIL_SENDERS.get(event.kind)
    if sender is None:
        logger.warning(f"⚠️ No sender registered for notification kind '{event.kind}'")
        return False

    recipient = mask_email(event.recipient_email)
    try:
        logger.info(f"📧 Sending {event.kind} email to {recipient}")
        await sender(to=event.recipient_email, client_name=event.recipient_name, **event.context)
        logger.info(f"✅ {event.kind} email sent to {recipient}")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to send {event.kind} email to {recipient}: {e}")
        return False


async def dispatch_notifications(events: Iterable[NotificationEvent]) -> dict:
    """Deliver queued events in order and summarize the outcome"""
    summary = {"sent": 0, "skipped": 0}
    for event in events:
        if await send_notification(event):
            summary["sent"] += 1
        else:
            summary["skipped"] += 1
    return summary
