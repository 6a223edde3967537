"""
Availability service - bookable slot generation and window validation.

Slots are derived on the fly from the weekly schedule. Nothing here writes
to the database, so listing availability is safe to run concurrently with
bookings; the booking path re-validates everything under lock.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from ...config import DEFAULT_SLOT_RANGE_DAYS, MIN_ADVANCE_BOOKING_MINUTES
from ...exceptions import (
    OutsideWorkingHours,
    OverlapsBreak,
    ProfessionalNotFound,
    ServiceNotFound,
    SlotInPast,
)
from ...models import Professional, ProfessionalService
from ...shared.clock import Clock, get_zone, system_clock
from .repository import ScheduleRepository
from .time_calculator import (
    build_slot_id,
    day_of_week,
    minutes_to_time,
    overlaps,
    time_to_minutes,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotCandidate:
    id: str
    professional_id: str
    slot_date: date
    start_time: str
    end_time: str
    duration: int


def resolve_slot_timing(
    professional: Professional, service: Optional[ProfessionalService] = None
) -> tuple[int, int]:
    """Return (duration, buffer) in minutes, service values overriding the professional's"""
    duration = professional.appointment_duration
    buffer_time = professional.buffer_time
    if service is not None:
        if service.duration:
            duration = service.duration
        if service.buffer_time is not None:
            buffer_time = service.buffer_time
    return duration, buffer_time or 0


def get_service_for(db: Session, professional: Professional, service_id: Optional[str]):
    if not service_id:
        return None
    service = ScheduleRepository.get_service(db, professional.id, service_id)
    if not service:
        raise ServiceNotFound()
    return service


def iter_available_slots(
    db: Session,
    professional_id: str,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    service_id: Optional[str] = None,
    exclude_appointment_id: Optional[str] = None,
    skip_min_advance: bool = False,
    clock: Clock = system_clock,
) -> Iterator[SlotCandidate]:
    """
    Lazily yield bookable slots ordered by date then start time.

    The professional and service are resolved eagerly so lookup errors
    surface at call time; schedule data is read on first iteration.
    Calling again returns a fresh iterator.
    """
    professional = ScheduleRepository.get_professional(db, professional_id)
    if not professional:
        raise ProfessionalNotFound()
    service = get_service_for(db, professional, service_id)

    today = clock.local_today(professional.timezone)
    start_date = from_date or today
    end_date = to_date or (start_date + timedelta(days=DEFAULT_SLOT_RANGE_DAYS))

    return _generate_slots(
        db,
        professional,
        service,
        start_date,
        end_date,
        exclude_appointment_id,
        skip_min_advance,
        clock,
    )


def _generate_slots(
    db: Session,
    professional: Professional,
    service: Optional[ProfessionalService],
    start_date: date,
    end_date: date,
    exclude_appointment_id: Optional[str],
    skip_min_advance: bool,
    clock: Clock,
) -> Iterator[SlotCandidate]:
    duration, buffer_time = resolve_slot_timing(professional, service)
    stride = duration + buffer_time
    if duration <= 0 or start_date > end_date:
        return

    now_utc = clock.now()
    local_now = clock.local_now(professional.timezone)
    today = local_now.date()
    now_minutes = local_now.hour * 60 + local_now.minute

    blocks_by_day: dict[int, list] = {}
    for block in ScheduleRepository.get_schedule_blocks(db, professional.id):
        blocks_by_day.setdefault(block.day_of_week, []).append(block)

    breaks_by_day: dict[int, list[tuple[int, int]]] = {}
    for brk in ScheduleRepository.get_breaks(db, professional.id):
        breaks_by_day.setdefault(brk.day_of_week, []).append(
            (time_to_minutes(brk.start_time), time_to_minutes(brk.end_time))
        )

    busy_by_date: dict[date, list[tuple[int, int]]] = {}
    for appt in ScheduleRepository.get_active_appointments(
        db, professional.id, start_date, end_date, now_utc, exclude_appointment_id
    ):
        busy_by_date.setdefault(appt.appointment_date, []).append(
            (time_to_minutes(appt.start_time), time_to_minutes(appt.end_time))
        )

    booked_ids = set()
    booked_windows = set()
    for slot in ScheduleRepository.get_booked_slots(db, professional.id, start_date, end_date):
        booked_ids.add(slot.id)
        booked_windows.add((slot.slot_date, slot.start_time, slot.end_time))

    seen = set()
    current = start_date
    while current <= end_date:
        if current < today:
            current += timedelta(days=1)
            continue

        weekday = day_of_week(current)
        day_breaks = breaks_by_day.get(weekday, [])
        day_busy = busy_by_date.get(current, [])

        for block in blocks_by_day.get(weekday, []):
            block_start = time_to_minutes(block.start_time)
            block_end = time_to_minutes(block.end_time)

            slot_start = block_start
            while slot_start < block_end:
                slot_end = slot_start + duration
                if slot_end > block_end:
                    break

                candidate_start = slot_start
                slot_start += stride

                if current == today and not skip_min_advance:
                    if candidate_start <= now_minutes + MIN_ADVANCE_BOOKING_MINUTES:
                        continue
                if any(overlaps(candidate_start, slot_end, b[0], b[1]) for b in day_breaks):
                    continue
                if any(overlaps(candidate_start, slot_end, a[0], a[1]) for a in day_busy):
                    continue

                start_label = minutes_to_time(candidate_start)
                end_label = minutes_to_time(slot_end)
                slot_id = build_slot_id(professional.id, current, start_label)
                if slot_id in seen:
                    continue
                if slot_id in booked_ids or (current, start_label, end_label) in booked_windows:
                    continue

                seen.add(slot_id)
                yield SlotCandidate(
                    id=slot_id,
                    professional_id=professional.id,
                    slot_date=current,
                    start_time=start_label,
                    end_time=end_label,
                    duration=duration,
                )

        current += timedelta(days=1)


def list_available_slots(db: Session, professional_id: str, **kwargs) -> list[SlotCandidate]:
    """Materialize ``iter_available_slots``"""
    slots = list(iter_available_slots(db, professional_id, **kwargs))
    logger.info(f"📅 {len(slots)} available slots for professional {professional_id}")
    return slots


# ============================================================================
# WINDOW VALIDATION (used by the booking path)
# ============================================================================


def ensure_not_in_past(
    professional: Professional, slot_date: date, start_time: str, clock: Clock = system_clock
) -> None:
    """Raise SlotInPast when the slot start has already passed in the professional's zone"""
    minutes = time_to_minutes(start_time)
    slot_start = datetime.combine(
        slot_date, time(minutes // 60, minutes % 60), tzinfo=get_zone(professional.timezone)
    )
    if slot_start < clock.local_now(professional.timezone):
        raise SlotInPast()


def ensure_within_schedule(
    db: Session, professional: Professional, slot_date: date, start_time: str, end_time: str
) -> None:
    """Raise OutsideWorkingHours or OverlapsBreak for a window that is not bookable"""
    weekday = day_of_week(slot_date)
    start_minutes = time_to_minutes(start_time)
    end_minutes = time_to_minutes(end_time)

    blocks = ScheduleRepository.get_schedule_blocks(db, professional.id, weekday)
    within = any(
        time_to_minutes(b.start_time) <= start_minutes and end_minutes <= time_to_minutes(b.end_time)
        for b in blocks
    )
    if not within:
        raise OutsideWorkingHours()

    for brk in ScheduleRepository.get_breaks(db, professional.id, weekday):
        if overlaps(start_minutes, end_minutes, time_to_minutes(brk.start_time), time_to_minutes(brk.end_time)):
            raise OverlapsBreak()
