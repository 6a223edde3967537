"""Waitlist repository - Database operations for waitlist entries"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import WAITLIST_NOTIFIED, WAITLIST_PENDING, WaitlistEntry


class WaitlistRepository:
    """Repository for waitlist database operations"""

    @staticmethod
    def create_entry(db: Session, **entry_data) -> WaitlistEntry:
        entry = WaitlistEntry(**entry_data)
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def get_by_token(db: Session, token: str, lock: bool = False) -> Optional[WaitlistEntry]:
        if not token:
            return None
        query = db.query(WaitlistEntry).filter(WaitlistEntry.token == token)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def list_entries(db: Session, professional_id: str, status: Optional[str] = None) -> list[WaitlistEntry]:
        query = db.query(WaitlistEntry).filter(WaitlistEntry.professional_id == professional_id)
        if status:
            query = query.filter(WaitlistEntry.status == status)
        return query.order_by(WaitlistEntry.created_at, WaitlistEntry.id).all()

    @staticmethod
    def find_pending_matches(
        db: Session,
        professional_id: str,
        service_id: Optional[str],
        window_start: date,
        window_end: date,
    ) -> list[WaitlistEntry]:
        """Pending entries for the same service (or both without one), oldest first"""
        query = db.query(WaitlistEntry).filter(
            WaitlistEntry.professional_id == professional_id,
            WaitlistEntry.status == WAITLIST_PENDING,
            WaitlistEntry.preferred_date >= window_start,
            WaitlistEntry.preferred_date <= window_end,
        )
        if service_id:
            query = query.filter(WaitlistEntry.professional_service_id == service_id)
        else:
            query = query.filter(WaitlistEntry.professional_service_id.is_(None))
        return query.order_by(WaitlistEntry.created_at, WaitlistEntry.id).all()

    @staticmethod
    def find_expired_claims(db: Session, now: datetime) -> list[WaitlistEntry]:
        return (
            db.query(WaitlistEntry)
            .filter(WaitlistEntry.status == WAITLIST_NOTIFIED, WaitlistEntry.expires_at <= now)
            .order_by(WaitlistEntry.expires_at, WaitlistEntry.id)
            .all()
        )

    @staticmethod
    def transition(db: Session, entry_id: str, from_status: str, to_status: str, *conditions, **values) -> int:
        """
        Conditional status change. Returns the number of rows moved, 0 when the
        entry was no longer in ``from_status``.
        """
        stmt = (
            update(WaitlistEntry)
            .where(WaitlistEntry.id == entry_id, WaitlistEntry.status == from_status, *conditions)
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount
