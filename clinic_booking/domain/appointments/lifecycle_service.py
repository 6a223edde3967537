"""
Appointment lifecycle - cancel, confirm, reschedule and delete.

States: draft -> confirmed, draft|confirmed -> cancelled, confirmed -> rescheduled.
Cancelled and rescheduled are terminal. Rescheduling links the new
appointment to the one it replaced through ``rescheduled_from_id``; those
links form a forest that must stay acyclic.
"""

import logging
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ...exceptions import (
    AppointmentNotFound,
    BookingError,
    InvalidCancellationToken,
    InvalidTransition,
    LineageCycle,
    SlotConflict,
)
from ...models import (
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_DRAFT,
    STATUS_RESCHEDULED,
    Appointment,
)
from ...services.notification_service import (
    NotificationEvent,
    appointment_booked_event,
    appointment_cancelled_event,
)
from ...shared.clock import Clock, system_clock
from ..scheduling.conflicts import draft_expiry_cutoff, is_active_appointment
from ..scheduling.repository import ScheduleRepository
from ..waitlist.service import WaitlistService
from .booking_service import BookingService
from .patients import PatientInfo
from .repository import AppointmentRepository, SlotRepository

logger = logging.getLogger(__name__)

CANCEL_ACTORS = ("client", "professional")
CANCELLABLE_STATUSES = (STATUS_DRAFT, STATUS_CONFIRMED)


class AppointmentLifecycleService:
    """Service layer for appointment state transitions"""

    def __init__(
        self,
        db: Session,
        clock: Clock = system_clock,
        notifications: Optional[list[NotificationEvent]] = None,
    ):
        self.db = db
        self.clock = clock
        self.notifications = notifications if notifications is not None else []
        self.repo = AppointmentRepository()
        self.waitlist = WaitlistService(db, clock, notifications=self.notifications)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise AppointmentNotFound()
        return appointment

    def get_lineage(self, appointment_id: str) -> list[Appointment]:
        """The appointment followed by every appointment it replaced, newest first"""
        chain = [self.get_appointment(appointment_id)]
        seen = {appointment_id}
        parent_id = chain[0].rescheduled_from_id
        while parent_id:
            if parent_id in seen:
                raise LineageCycle()
            seen.add(parent_id)
            parent = self.repo.get_appointment(self.db, parent_id)
            if not parent:
                break
            chain.append(parent)
            parent_id = parent.rescheduled_from_id
        return chain

    # ========================================================================
    # TRANSITIONS
    # ========================================================================

    def cancel_appointment(self, appointment_id: str, cancelled_by: str) -> Appointment:
        """Cancel an appointment, free its slot and offer the time to the waitlist"""
        if cancelled_by not in CANCEL_ACTORS:
            raise ValueError(f"cancelled_by must be one of {CANCEL_ACTORS}")

        def _cancel():
            appointment = self.repo.get_appointment(self.db, appointment_id, lock=True)
            if not appointment:
                raise AppointmentNotFound()
            self._cancel_locked(appointment, cancelled_by)
            return appointment

        return self._run(_cancel, f"cancel appointment {appointment_id}")

    def cancel_by_token(self, token: str) -> Appointment:
        """Client self-service cancellation through the emailed link"""

        def _cancel():
            appointment = self.repo.get_by_cancellation_token(self.db, token, lock=True)
            if not appointment or appointment.status not in CANCELLABLE_STATUSES:
                raise InvalidCancellationToken()
            self._cancel_locked(appointment, "client")
            return appointment

        return self._run(_cancel, "cancel appointment by token")

    def confirm_draft(self, appointment_id: str) -> Appointment:
        def _confirm():
            appointment = self.repo.get_appointment(self.db, appointment_id, lock=True)
            if not appointment:
                raise AppointmentNotFound()
            if appointment.status != STATUS_DRAFT:
                raise InvalidTransition("Only draft appointments can be confirmed")
            if not is_active_appointment(appointment, self.clock.now()):
                raise InvalidTransition("Draft has expired, please book again")
            appointment.status = STATUS_CONFIRMED
            self.db.flush()
            professional = ScheduleRepository.get_professional(self.db, appointment.professional_id)
            self.notifications.append(appointment_booked_event(appointment, professional))
            return appointment

        return self._run(_confirm, f"confirm draft {appointment_id}")

    def reschedule_appointment(self, appointment_id: str, new_slot_id: str) -> Appointment:
        """
        Move a confirmed appointment to another slot of the same professional.

        The new appointment is booked without charging quota again, the
        original becomes ``rescheduled`` and its slot is offered to the
        waitlist. Returns the new appointment.
        """

        def _reschedule():
            now = self.clock.now()
            original = self.repo.get_appointment(self.db, appointment_id, lock=True)
            if not original:
                raise AppointmentNotFound()
            if original.status != STATUS_CONFIRMED:
                raise InvalidTransition("Only confirmed appointments can be rescheduled")

            # Both slot rows are locked before the booking takes patient and quota locks
            for locked_slot_id in sorted({new_slot_id, original.time_slot_id} - {None}):
                ScheduleRepository.get_slot(self.db, locked_slot_id, lock=True)

            booking = BookingService(self.db, self.clock, notifications=self.notifications)
            replacement, professional = booking.book_in_transaction(
                new_slot_id,
                PatientInfo(
                    first_name=original.first_name,
                    last_name=original.last_name,
                    email=original.email,
                    phone=original.phone,
                    notes=original.notes,
                ),
                service_id=original.professional_service_id,
                status=STATUS_CONFIRMED,
                exclude_appointment_id=original.id,
                consume_quota=False,
            )
            if replacement.professional_id != original.professional_id:
                raise InvalidTransition("Appointments can only be rescheduled with the same professional")

            self._assert_acyclic(replacement.id, original.id)
            replacement.rescheduled_from_id = original.id

            original.status = STATUS_RESCHEDULED
            original.rescheduled_at = now
            original.cancellation_token = None
            self.db.flush()

            if original.time_slot_id and original.time_slot_id != replacement.time_slot_id:
                SlotRepository.release(self.db, original.time_slot_id, now)
                self.waitlist.release_slot_to_waitlist(
                    professional,
                    original.professional_service_id,
                    original.appointment_date,
                    original.start_time,
                    original.end_time,
                    slot_id=original.time_slot_id,
                )

            self.notifications.append(appointment_booked_event(replacement, professional))
            return replacement

        replacement = self._run(_reschedule, f"reschedule appointment {appointment_id}")
        logger.info(f"🔄 Appointment {appointment_id} rescheduled to {replacement.id}")
        return replacement

    def delete_appointment(self, appointment_id: str) -> None:
        """
        Hard-delete an appointment while keeping reschedule history intact.

        Appointments that replaced the deleted one are re-pointed to its own
        predecessor, so A <- B <- C becomes A <- C when B is deleted.
        """

        def _delete():
            appointment = self.repo.get_appointment(self.db, appointment_id, lock=True)
            if not appointment:
                raise AppointmentNotFound()

            parent_id = appointment.rescheduled_from_id
            for successor in self.repo.get_successors(self.db, appointment.id, lock=True):
                if parent_id:
                    self._assert_acyclic(successor.id, parent_id)
                successor.rescheduled_from_id = parent_id
            self.db.flush()

            slot_id = appointment.time_slot_id
            self.db.delete(appointment)
            self.db.flush()
            if slot_id:
                SlotRepository.release(self.db, slot_id, self.clock.now())

        self._run(_delete, f"delete appointment {appointment_id}")
        logger.info(f"🗑️ Deleted appointment {appointment_id}")

    def sweep_expired_drafts(self) -> dict:
        """
        Free slot rows held only by expired drafts.

        Drafts keep their status; the conflict predicate already ignores
        them. Safe to run repeatedly.
        """
        now = self.clock.now()
        cutoff = draft_expiry_cutoff(now)
        try:
            expired = self.repo.count_expired_drafts(self.db, cutoff)
            released = 0
            for slot_id in self.repo.expired_draft_slot_ids(self.db, cutoff):
                released += SlotRepository.release(self.db, slot_id, now)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if released:
            logger.info(f"🔄 Released {released} slots held by expired drafts")
        return {"expired_drafts": expired, "slots_released": released}

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _cancel_locked(self, appointment: Appointment, cancelled_by: str) -> None:
        if appointment.status not in CANCELLABLE_STATUSES:
            raise InvalidTransition("Appointment is already cancelled or rescheduled")

        now = self.clock.now()
        was_active = is_active_appointment(appointment, now)

        appointment.status = STATUS_CANCELLED
        appointment.cancelled_by = cancelled_by
        appointment.cancelled_at = now
        appointment.cancellation_token = None
        self.db.flush()

        if appointment.time_slot_id:
            SlotRepository.release(self.db, appointment.time_slot_id, now)

        professional = ScheduleRepository.get_professional(self.db, appointment.professional_id)
        self.notifications.append(appointment_cancelled_event(appointment, professional))
        logger.info(f"❌ Appointment {appointment.id} cancelled by {cancelled_by}")

        if was_active:
            self.waitlist.release_slot_to_waitlist(
                professional,
                appointment.professional_service_id,
                appointment.appointment_date,
                appointment.start_time,
                appointment.end_time,
                slot_id=appointment.time_slot_id,
            )

    def _assert_acyclic(self, child_id: str, new_parent_id: str) -> None:
        """Walk up from the new parent; reaching the child would close a cycle"""
        seen = set()
        current = new_parent_id
        while current:
            if current == child_id or current in seen:
                logger.error(f"❌ Lineage cycle: {child_id} -> {new_parent_id}")
                raise LineageCycle()
            seen.add(current)
            current = self.repo.get_parent_id(self.db, current)

    def _run(self, operation, description: str):
        """Run ``operation`` in one transaction: commit on success, roll back on any error"""
        try:
            result = operation()
            self.db.commit()
        except BookingError:
            self.db.rollback()
            raise
        except OperationalError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Lock wait timed out during {description}: {e}")
            raise SlotConflict() from e
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to {description}: {e}")
            raise
        return result
