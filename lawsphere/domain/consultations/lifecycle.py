"""
Consultation status machine and schedule arithmetic

Statuses: pending → accepted → completed, with rejected and cancelled as
terminal exits. ``rescheduled`` is a legacy stored value that is only ever
read, and is reported as ``accepted``.
"""

import re
from datetime import date as date_type
from datetime import datetime, time, timedelta
from typing import Optional

from ...errors import ValidationError

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
CANCELLED = "cancelled"
COMPLETED = "completed"
LEGACY_RESCHEDULED = "rescheduled"

# Values a lawyer may set directly through update_status
ALLOWED_STATUS_UPDATES = (PENDING, ACCEPTED, REJECTED, COMPLETED)

# Bookings that can still be cancelled, rescheduled or paid
OPEN_STATUSES = (PENDING, ACCEPTED)

CONSULTATION_TYPES = ("video", "phone", "in-person")

MAX_RESCHEDULES = 1

_LEADING_DIGITS = re.compile(r"^\s*(\d+)")


def _leading_int(part: Optional[str]) -> int:
    match = _LEADING_DIGITS.match(part or "")
    return int(match.group(1)) if match else 0


def parse_time(value: Optional[str]) -> tuple[int, int]:
    """
    Split an "HH:MM" string into (hours, minutes).

    Missing or malformed parts read as 0, so "9" is (9, 0) and "ab:cd" is
    (0, 0). Values are not range-checked.
    """
    parts = str(value or "00:00").strip().split(":")
    hours = _leading_int(parts[0])
    minutes = _leading_int(parts[1]) if len(parts) > 1 else 0
    return hours, minutes


def scheduled_start(day, time_str: Optional[str]) -> datetime:
    """Wall-clock start of a booking; out-of-range hours/minutes roll forward"""
    if isinstance(day, datetime):
        day = day.date()
    hours, minutes = parse_time(time_str)
    return datetime.combine(day, time.min) + timedelta(hours=hours, minutes=minutes)


def is_past_due(day, time_str: Optional[str], now: datetime) -> bool:
    return scheduled_start(day, time_str) <= now


def display_status(status: str) -> str:
    return ACCEPTED if status == LEGACY_RESCHEDULED else status


def parse_date(value) -> datetime:
    """
    Accept a datetime, a date, or an ISO-8601 string (trailing "Z" allowed).

    Timezone information is dropped; the wall-clock value is kept as given.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date_type):
        return datetime.combine(value, time.min)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}") from e
    return parsed.replace(tzinfo=None)
