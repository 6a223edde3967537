"""Time source for the booking core.

Every instant stored in the database is naive UTC. Wall-clock reasoning
(today, minimum advance, claim deadlines) happens in the professional's
IANA timezone via ``zoneinfo``.
"""

import logging
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as naive UTC, the storage format for all timestamps"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@lru_cache(maxsize=64)
def get_zone(tz_name: Optional[str]) -> ZoneInfo:
    """Resolve an IANA zone, falling back to the default operating zone"""
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"⚠️ Unknown timezone '{tz_name}', using {DEFAULT_TIMEZONE}")
    return ZoneInfo(DEFAULT_TIMEZONE)


def to_local(moment_utc: datetime, tz_name: Optional[str]) -> datetime:
    """Convert a naive UTC instant to an aware local datetime"""
    return moment_utc.replace(tzinfo=timezone.utc).astimezone(get_zone(tz_name))


def to_utc_naive(moment: datetime) -> datetime:
    """Convert an aware datetime to the naive UTC storage format"""
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class Clock:
    """Injectable clock; tests substitute a frozen one"""

    def now(self) -> datetime:
        return utcnow()

    def local_now(self, tz_name: Optional[str]) -> datetime:
        return to_local(self.now(), tz_name)

    def local_today(self, tz_name: Optional[str]) -> date:
        return self.local_now(tz_name).date()


system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency for the time source"""
    return system_clock
