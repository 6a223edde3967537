"""
Booking error taxonomy.

Every error raised on a booking path aborts the surrounding transaction.
``retryable`` tells callers whether the same request may succeed later.
"""


class BookingError(Exception):
    """Base class for all domain errors raised by the booking core"""

    status_code = 400
    code = "booking_error"
    retryable = False
    default_message = "Booking request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ProfessionalNotFound(BookingError):
    status_code = 404
    code = "professional_not_found"
    default_message = "Professional not found"


class ServiceNotFound(BookingError):
    status_code = 404
    code = "service_not_found"
    default_message = "Service not found"


class SlotNotFound(BookingError):
    status_code = 404
    code = "slot_not_found"
    default_message = "Time slot not found"


class SlotInPast(BookingError):
    code = "slot_in_past"
    default_message = "Cannot book a time slot in the past"


class OutsideWorkingHours(BookingError):
    code = "outside_working_hours"
    default_message = "Time slot is outside the professional's working hours"


class OverlapsBreak(BookingError):
    code = "overlaps_break"
    default_message = "Time slot overlaps a break"


class SlotConflict(BookingError):
    status_code = 409
    code = "slot_conflict"
    retryable = True
    default_message = "This time slot was just booked by someone else. Please choose another time."


class QuotaExceeded(BookingError):
    status_code = 403
    code = "quota_exceeded"
    retryable = True
    default_message = "Appointment limit reached for the current plan. Upgrade to keep booking."


class AppointmentNotFound(BookingError):
    status_code = 404
    code = "appointment_not_found"
    default_message = "Appointment not found"


class InvalidCancellationToken(BookingError):
    status_code = 404
    code = "invalid_cancellation_token"
    default_message = "Invalid or already used cancellation link"


class InvalidTransition(BookingError):
    status_code = 409
    code = "invalid_transition"
    default_message = "Operation not allowed in the current state"


class LineageCycle(BookingError):
    status_code = 409
    code = "lineage_cycle"
    default_message = "Reschedule history would contain a cycle"


class WaitlistDisabled(BookingError):
    status_code = 403
    code = "waitlist_disabled"
    default_message = "This professional is not accepting waitlist requests"


class InvalidWaitlistToken(BookingError):
    status_code = 404
    code = "invalid_waitlist_token"
    default_message = "Invalid or already used waitlist link"


class WaitlistClaimExpired(BookingError):
    status_code = 410
    code = "waitlist_claim_expired"
    default_message = "Your priority window for this slot has expired"
