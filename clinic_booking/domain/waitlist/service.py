"""
Waitlist service - matching freed slots to waiting clients.

Entry states: pending -> notified -> fulfilled | expired | cancelled, plus
pending -> cancelled. A freed slot is offered to the oldest matching
pending entry, which gets a time-boxed priority link. Every transition is a
conditional update on the current status so concurrent sweeps and claims
cannot both win. Tokens are single-use: any terminal state clears them.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ...config import WAITLIST_CASCADE_ON_RELEASE, WAITLIST_MATCH_WINDOW_DAYS
from ...exceptions import (
    BookingError,
    InvalidWaitlistToken,
    ProfessionalNotFound,
    SlotConflict,
    WaitlistClaimExpired,
    WaitlistDisabled,
)
from ...models import (
    STATUS_CONFIRMED,
    WAITLIST_CANCELLED,
    WAITLIST_EXPIRED,
    WAITLIST_FULFILLED,
    WAITLIST_NOTIFIED,
    WAITLIST_PENDING,
    Appointment,
    Professional,
    WaitlistEntry,
)
from ...security_utils import generate_secure_token
from ...services.notification_service import (
    NotificationEvent,
    appointment_booked_event,
    waitlist_claim_expired_event,
    waitlist_joined_event,
    waitlist_slot_available_event,
)
from ...shared.clock import Clock, system_clock, to_utc_naive
from ..appointments.booking_service import BookingService
from ..appointments.patients import PatientInfo
from ..scheduling.availability_service import get_service_for
from ..scheduling.conflicts import find_conflicting_appointments
from ..scheduling.repository import ScheduleRepository
from ..scheduling.time_calculator import build_slot_id
from .repository import WaitlistRepository

logger = logging.getLogger(__name__)


class WaitlistService:
    """Service layer for waitlist business logic"""

    def __init__(
        self,
        db: Session,
        clock: Clock = system_clock,
        notifications: Optional[list[NotificationEvent]] = None,
    ):
        self.db = db
        self.clock = clock
        self.notifications = notifications if notifications is not None else []
        self.repo = WaitlistRepository()

    # ========================================================================
    # CLIENT OPERATIONS
    # ========================================================================

    def join_waitlist(
        self,
        professional_id: str,
        preferred_date: date,
        first_name: str,
        last_name: str,
        phone: str,
        email: Optional[str] = None,
        service_id: Optional[str] = None,
        preferred_time_start: Optional[str] = None,
        preferred_time_end: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> WaitlistEntry:
        professional = ScheduleRepository.get_professional(self.db, professional_id)
        if not professional:
            raise ProfessionalNotFound()
        if not professional.waitlist_enabled:
            raise WaitlistDisabled()
        get_service_for(self.db, professional, service_id)

        try:
            entry = self.repo.create_entry(
                self.db,
                professional_id=professional.id,
                professional_service_id=service_id,
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                email=email,
                phone=phone,
                preferred_date=preferred_date,
                preferred_time_start=preferred_time_start,
                preferred_time_end=preferred_time_end,
                notes=notes,
                token=generate_secure_token(),
                status=WAITLIST_PENDING,
                created_at=self.clock.now(),
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(entry)
        logger.info(f"📋 Waitlist entry {entry.id} created for professional {professional.id} on {preferred_date}")
        self.notifications.append(waitlist_joined_event(entry, professional))
        return entry

    def list_entries(self, professional_id: str, status: Optional[str] = None) -> list[WaitlistEntry]:
        return self.repo.list_entries(self.db, professional_id, status)

    def get_claim(self, token: str) -> WaitlistEntry:
        """Resolve a live priority link"""
        entry = self.repo.get_by_token(self.db, token)
        if not entry or entry.status != WAITLIST_NOTIFIED:
            raise InvalidWaitlistToken()
        if entry.expires_at and entry.expires_at <= self.clock.now():
            raise WaitlistClaimExpired()
        return entry

    def confirm_waitlist_claim(self, token: str) -> Appointment:
        """
        Book the offered slot for the entry behind ``token``.

        The booking and the ``fulfilled`` transition commit together. A claim
        past its deadline is expired on the spot and WaitlistClaimExpired is
        raised.
        """
        now = self.clock.now()
        try:
            entry = self.repo.get_by_token(self.db, token, lock=True)
            if not entry or entry.status != WAITLIST_NOTIFIED:
                raise InvalidWaitlistToken()

            if entry.expires_at and entry.expires_at <= now:
                if self._expire(entry):
                    self._offer_to_next(entry)
                self.db.commit()
                raise WaitlistClaimExpired()

            slot_id = entry.available_slot_id or build_slot_id(
                entry.professional_id, entry.available_date, entry.available_start_time
            )
            booking = BookingService(self.db, self.clock, notifications=self.notifications)
            appointment, professional = booking.book_in_transaction(
                slot_id,
                PatientInfo(
                    first_name=entry.first_name,
                    last_name=entry.last_name,
                    email=entry.email,
                    phone=entry.phone,
                    notes=entry.notes,
                ),
                service_id=entry.professional_service_id,
                status=STATUS_CONFIRMED,
            )

            moved = self.repo.transition(
                self.db, entry.id, WAITLIST_NOTIFIED, WAITLIST_FULFILLED, token=None
            )
            if moved == 0:
                raise InvalidWaitlistToken()
            self.db.commit()
        except BookingError:
            self.db.rollback()
            raise
        except OperationalError as e:
            self.db.rollback()
            raise SlotConflict() from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(f"✅ Waitlist entry {entry.id} fulfilled with appointment {appointment.id}")
        self.notifications.append(appointment_booked_event(appointment, professional))
        return appointment

    def release_waitlist_claim(self, token: str) -> WaitlistEntry:
        """Client declines the offer; the slot moves on to the next client in line"""
        try:
            entry = self.repo.get_by_token(self.db, token, lock=True)
            if not entry or entry.status != WAITLIST_NOTIFIED:
                raise InvalidWaitlistToken()

            moved = self.repo.transition(
                self.db, entry.id, WAITLIST_NOTIFIED, WAITLIST_CANCELLED, token=None
            )
            if moved == 0:
                raise InvalidWaitlistToken()
            logger.info(f"↩️ Waitlist entry {entry.id} released its claim")

            if WAITLIST_CASCADE_ON_RELEASE:
                self._offer_to_next(entry)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(entry)
        return entry

    def cancel_waitlist_entry(self, token: str) -> WaitlistEntry:
        """Withdraw a pending entry"""
        try:
            entry = self.repo.get_by_token(self.db, token, lock=True)
            if not entry or entry.status != WAITLIST_PENDING:
                raise InvalidWaitlistToken()
            moved = self.repo.transition(
                self.db, entry.id, WAITLIST_PENDING, WAITLIST_CANCELLED, token=None
            )
            if moved == 0:
                raise InvalidWaitlistToken()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(entry)
        logger.info(f"❌ Waitlist entry {entry.id} cancelled")
        return entry

    # ========================================================================
    # MATCHING (runs inside the caller's transaction)
    # ========================================================================

    def release_slot_to_waitlist(
        self,
        professional: Professional,
        service_id: Optional[str],
        freed_date: date,
        start_time: str,
        end_time: str,
        slot_id: Optional[str] = None,
        exclude_entry_id: Optional[str] = None,
    ) -> Optional[WaitlistEntry]:
        """
        Offer a freed window to the oldest matching pending entry.

        Entries match when their service equals the freed one (or both have
        none) and their preferred date lies in [freed_date - window, freed_date].
        Does not commit.
        """
        if not professional.waitlist_enabled:
            return None

        now = self.clock.now()
        if find_conflicting_appointments(
            self.db, professional.id, freed_date, start_time, end_time, now
        ):
            return None

        window_start = freed_date - timedelta(days=WAITLIST_MATCH_WINDOW_DAYS)
        candidates = self.repo.find_pending_matches(
            self.db, professional.id, service_id, window_start, freed_date
        )

        deadline_local = self.clock.local_now(professional.timezone) + timedelta(
            hours=professional.waitlist_priority_hours
        )
        expires_at = to_utc_naive(deadline_local)

        for entry in candidates:
            if entry.id == exclude_entry_id:
                continue
            moved = self.repo.transition(
                self.db,
                entry.id,
                WAITLIST_PENDING,
                WAITLIST_NOTIFIED,
                notified_at=now,
                expires_at=expires_at,
                available_slot_id=slot_id,
                available_date=freed_date,
                available_start_time=start_time,
                available_end_time=end_time,
            )
            if moved == 0:
                continue

            self.db.refresh(entry)
            logger.info(
                f"🔔 Offered {freed_date} {start_time} to waitlist entry {entry.id} until {expires_at} UTC"
            )
            self.notifications.append(
                waitlist_slot_available_event(
                    entry, professional, deadline_local.strftime("%Y-%m-%d %H:%M %Z")
                )
            )
            return entry

        logger.debug(f"No waitlist match for professional {professional.id} on {freed_date}")
        return None

    # ========================================================================
    # SWEEP
    # ========================================================================

    def sweep_expired_waitlist_claims(self) -> dict:
        """Expire notified entries past their deadline. Idempotent."""
        now = self.clock.now()
        expired = 0
        reoffered = 0
        try:
            for entry in self.repo.find_expired_claims(self.db, now):
                if self._expire(entry):
                    expired += 1
                    if self._offer_to_next(entry):
                        reoffered += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if expired:
            logger.info(f"⏰ Expired {expired} waitlist claims, re-offered {reoffered} slots")
        return {"expired": expired, "reoffered": reoffered}

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _expire(self, entry: WaitlistEntry) -> bool:
        moved = self.repo.transition(
            self.db,
            entry.id,
            WAITLIST_NOTIFIED,
            WAITLIST_EXPIRED,
            WaitlistEntry.expires_at <= self.clock.now(),
            token=None,
        )
        if moved:
            self.notifications.append(waitlist_claim_expired_event(entry))
            logger.info(f"⏰ Waitlist claim {entry.id} expired")
        return bool(moved)

    def _offer_to_next(self, entry: WaitlistEntry) -> Optional[WaitlistEntry]:
        """Pass the window a finished claim was holding to the next pending entry"""
        if not entry.available_date or not entry.available_start_time:
            return None
        professional = ScheduleRepository.get_professional(self.db, entry.professional_id)
        if not professional:
            return None
        return self.release_slot_to_waitlist(
            professional,
            entry.professional_service_id,
            entry.available_date,
            entry.available_start_time,
            entry.available_end_time,
            slot_id=entry.available_slot_id,
            exclude_entry_id=entry.id,
        )
