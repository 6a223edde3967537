"""
Plan limits for lifetime appointment quotas.

The counter lives on the professional row and only ever goes up: cancelled
or deleted appointments are not refunded.
"""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from .config import FREE_PLAN_APPOINTMENT_LIMIT
from .exceptions import QuotaExceeded
from .models import Professional

logger = logging.getLogger(__name__)

PLAN_LIMITS = {"free": FREE_PLAN_APPOINTMENT_LIMIT, "pro": None, "legacy": None}  # None means unlimited


def get_plan_limit(plan: Optional[str]) -> Optional[int]:
    """Get the appointment limit for a given plan. Returns None for unlimited."""
    if not plan:
        return None
    return PLAN_LIMITS.get(plan.lower())


def reserve_appointment_quota(db: Session, professional: Professional) -> None:
    """
    Count one appointment against the professional's plan.

    Capped plans use a conditional increment so two concurrent bookings can
    never both take the last unit. Raises QuotaExceeded when the cap is
    reached; the caller's transaction must then be rolled back.
    """
    limit = get_plan_limit(professional.plan_type)

    stmt = update(Professional).where(Professional.id == professional.id)
    if limit is not None:
        stmt = stmt.where(Professional.total_appointments_created < limit)
    stmt = stmt.values(
        total_appointments_created=Professional.total_appointments_created + 1
    ).execution_options(synchronize_session=False)

    result = db.execute(stmt)
    if result.rowcount == 0:
        logger.warning(
            f"⚠️ Professional {professional.id} reached the {professional.plan_type} plan limit ({limit})"
        )
        raise QuotaExceeded()

    db.expire(professional, ["total_appointments_created"])


def get_usage_stats(professional: Professional) -> dict:
    """Get usage statistics for a professional"""
    limit = get_plan_limit(professional.plan_type)
    used = professional.total_appointments_created or 0

    return {
        "plan": professional.plan_type,
        "appointments_created": used,
        "limit": limit,
        "remaining": None if limit is None else max(limit - used, 0),
        "is_unlimited": limit is None,
        "can_book": limit is None or used < limit,
    }
