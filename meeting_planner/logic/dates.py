"""Date-only arithmetic for reference-date scheduling.

Everything here works on ``datetime.date`` values so that offsets never pick
up a timezone or DST shift. Timestamps (``completed_at``) are stored in UTC
and become calendar days in the planner's zone, given as ``tz``.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

Urgency = Literal["overdue", "due_today", "upcoming", "none"]


def planner_zone(tz_name: str | None) -> tzinfo:
    name = (tz_name or "").strip() or "UTC"
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("planner_timezone_invalid name=%s", name)
        return UTC


def to_date(value: date | datetime | str | None, tz: tzinfo | None = None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if tz is None:
            return value.date()
        # Naive timestamps are UTC
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(tz).date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    # Accept both "2025-10-01" and full ISO timestamps
    return date.fromisoformat(text[:10])


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=int(days))


def today(tz: tzinfo | None = None) -> date:
    return datetime.now(tz or UTC).date()


def due_date_urgency(due_date: date | datetime | str | None, on: date | None = None) -> Urgency:
    """Classify a due date the way task badges do: red, yellow, or plain."""
    resolved = to_date(due_date)
    if resolved is None:
        return "none"
    current = on or today()
    if resolved < current:
        return "overdue"
    if resolved == current:
        return "due_today"
    return "upcoming"
