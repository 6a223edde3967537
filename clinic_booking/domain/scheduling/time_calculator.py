"""Time parsing and calculations for HH:MM wall-clock values"""

import re
from datetime import date, datetime
from typing import Optional, Tuple

SLOT_ID_PATTERN = re.compile(
    r"^(?P<professional_id>.+)-(?P<date>\d{4}-\d{2}-\d{2})-(?P<start>\d{2}:\d{2})$"
)


def time_to_minutes(value: str) -> int:
    """'09:35' -> 575"""
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time(total: int) -> str:
    """575 -> '09:35'"""
    return f"{total // 60:02d}:{total % 60:02d}"


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap: touching edges do not overlap"""
    return start_a < end_b and end_a > start_b


def day_of_week(day: date) -> int:
    """Weekday with 0 = Sunday, matching the schedule tables"""
    return (day.weekday() + 1) % 7


def build_slot_id(professional_id: str, slot_date: date, start_time: str) -> str:
    return f"{professional_id}-{slot_date.isoformat()}-{start_time}"


def parse_slot_id(slot_id: str) -> Optional[Tuple[str, date, str]]:
    """
    Split a deterministic slot id into (professional_id, date, start).

    Returns None when the id does not follow the deterministic format or
    carries an impossible date or time.
    """
    match = SLOT_ID_PATTERN.match(slot_id or "")
    if not match:
        return None
    try:
        slot_date = datetime.strptime(match.group("date"), "%Y-%m-%d").date()
        datetime.strptime(match.group("start"), "%H:%M")
    except ValueError:
        return None
    return match.group("professional_id"), slot_date, match.group("start")
