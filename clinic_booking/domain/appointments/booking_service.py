"""
Booking service - atomic slot reservation.

A booking runs in a single transaction and takes its locks in a fixed order:
time slot, then patient, then the professional row that carries the quota
counter. The overlap check is repeated right before the insert, so two
requests racing for the same window cannot both commit.
"""

import logging
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ...exceptions import (
    BookingError,
    InvalidTransition,
    OutsideWorkingHours,
    SlotConflict,
    SlotNotFound,
)
from ...models import STATUS_CONFIRMED, STATUS_DRAFT, Appointment, Professional, TimeSlot
from ...plan_limits import reserve_appointment_quota
from ...security_utils import generate_secure_token
from ...services.notification_service import NotificationEvent, appointment_booked_event
from ...shared.clock import Clock, system_clock
from ..scheduling.availability_service import (
    ensure_not_in_past,
    ensure_within_schedule,
    get_service_for,
    resolve_slot_timing,
)
from ..scheduling.conflicts import find_conflicting_appointments
from ..scheduling.repository import ScheduleRepository
from ..scheduling.time_calculator import minutes_to_time, parse_slot_id, time_to_minutes
from .patients import PatientInfo, PatientResolver
from .repository import AppointmentRepository, SlotRepository

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
BOOKABLE_STATUSES = (STATUS_DRAFT, STATUS_CONFIRMED)


class BookingService:
    """Service layer for reserving time slots"""

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

    def book_slot(
        self,
        slot_id: str,
        patient_info: PatientInfo,
        service_id: Optional[str] = None,
        status: str = STATUS_CONFIRMED,
    ) -> Appointment:
        """
        Book a slot and commit.

        Raises a BookingError subclass on any validation, conflict or quota
        failure. Nothing is persisted in that case.
        """
        try:
            appointment, professional = self.book_in_transaction(
                slot_id, patient_info, service_id=service_id, status=status
            )
            self.db.commit()
        except BookingError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Booking of slot {slot_id} rejected: {e.code}")
            raise
        except OperationalError as e:
            # Lock or statement timeout while waiting on a competing booking
            self.db.rollback()
            logger.warning(f"⚠️ Lock wait on slot {slot_id} timed out: {e}")
            raise SlotConflict() from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(
            f"✅ Booked appointment {appointment.id} ({appointment.status}) on "
            f"{appointment.appointment_date} {appointment.start_time} for professional {professional.id}"
        )
        if appointment.status == STATUS_CONFIRMED:
            self.notifications.append(appointment_booked_event(appointment, professional))
        return appointment

    def book_in_transaction(
        self,
        slot_id: str,
        patient_info: PatientInfo,
        service_id: Optional[str] = None,
        status: str = STATUS_CONFIRMED,
        exclude_appointment_id: Optional[str] = None,
        consume_quota: bool = True,
    ) -> tuple[Appointment, Professional]:
        """
        Run the booking protocol inside the caller's transaction without committing.

        ``exclude_appointment_id`` ignores one appointment in every overlap
        check (used when rescheduling). ``consume_quota`` is False when the
        booking replaces an appointment that was already counted.
        """
        if status not in BOOKABLE_STATUSES:
            raise InvalidTransition(f"Appointments cannot be created as '{status}'")

        now = self.clock.now()

        # 1. Slot lock (materializing a virtual slot when needed)
        slot = ScheduleRepository.get_slot(self.db, slot_id, lock=True)
        if slot is None:
            slot = self._materialize_slot(slot_id, service_id, exclude_appointment_id)
            professional = ScheduleRepository.get_professional(self.db, slot.professional_id)
            service = get_service_for(self.db, professional, service_id)
            end_time = slot.end_time
        else:
            professional = ScheduleRepository.get_professional(self.db, slot.professional_id)
            if not professional:
                raise SlotNotFound()
            service = get_service_for(self.db, professional, service_id)
            # The row may have been created for a service of another length
            end_time = self._validate_window(professional, service, slot.slot_date, slot.start_time)

        # 2. Patient
        patient = PatientResolver(self.db).resolve(professional, patient_info, now)

        # 3. Quota counter lock, then the final overlap check
        professional = ScheduleRepository.get_professional(self.db, professional.id, lock=True)
        conflicts = find_conflicting_appointments(
            self.db,
            professional.id,
            slot.slot_date,
            slot.start_time,
            end_time,
            now,
            exclude_appointment_id=exclude_appointment_id,
        )
        if conflicts:
            logger.info(f"🔒 Slot {slot.id} taken by appointment {conflicts[0].id}")
            raise SlotConflict()
        if slot.end_time != end_time:
            logger.info(f"📅 Slot {slot.id} resized to end at {end_time}")
            slot.end_time = end_time

        # 4. Appointment + slot state
        appointment = self.repo.create_appointment(
            self.db,
            professional_id=professional.id,
            patient_id=patient.id,
            time_slot_id=slot.id,
            professional_service_id=service.id if service else None,
            appointment_date=slot.slot_date,
            start_time=slot.start_time,
            end_time=end_time,
            first_name=patient_info.first_name.strip(),
            last_name=patient_info.last_name.strip(),
            email=patient_info.email,
            phone=patient_info.phone,
            notes=patient_info.notes,
            status=status,
            cancellation_token=generate_secure_token(),
            created_at=now,
        )
        slot.is_booked = True
        self.db.flush()

        # 5. Quota
        if consume_quota:
            reserve_appointment_quota(self.db, professional)

        return appointment, professional

    def _materialize_slot(
        self, slot_id: str, service_id: Optional[str], exclude_appointment_id: Optional[str]
    ) -> TimeSlot:
        """Validate a deterministic slot id against the schedule and insert its row"""
        parsed = parse_slot_id(slot_id)
        if parsed is None:
            raise SlotNotFound()
        professional_id, slot_date, start_time = parsed

        professional = ScheduleRepository.get_professional(self.db, professional_id)
        if not professional:
            raise SlotNotFound()
        service = get_service_for(self.db, professional, service_id)

        end_time = self._validate_window(professional, service, slot_date, start_time)
        if find_conflicting_appointments(
            self.db,
            professional_id,
            slot_date,
            start_time,
            end_time,
            self.clock.now(),
            exclude_appointment_id=exclude_appointment_id,
        ):
            raise SlotConflict()

        SlotRepository.insert_if_absent(
            self.db, slot_id, professional_id, slot_date, start_time, end_time, self.clock.now()
        )
        slot = ScheduleRepository.get_slot(self.db, slot_id, lock=True)
        if slot is None:
            raise SlotNotFound()
        logger.info(f"📅 Materialized slot {slot_id}")
        return slot

    def _validate_window(self, professional: Professional, service, slot_date, start_time: str) -> str:
        """Return the end time the service needs from ``start_time``, rejecting unbookable windows"""
        duration, _ = resolve_slot_timing(professional, service)
        end_minutes = time_to_minutes(start_time) + duration
        if end_minutes > MINUTES_PER_DAY:
            raise OutsideWorkingHours()
        end_time = minutes_to_time(end_minutes)

        ensure_not_in_past(professional, slot_date, start_time, self.clock)
        ensure_within_schedule(self.db, professional, slot_date, start_time, end_time)
        return end_time
