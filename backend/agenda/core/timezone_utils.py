# backend/agenda/core/timezone_utils.py
"""
Timezone utilities for the booking engine.

Appointment dates and times are wall-clock values in the marketplace
timezone, so "today" must come from that zone rather than the host clock.
"""

from datetime import date, datetime
from typing import Optional

import pytz

from .config import settings


def get_marketplace_timezone() -> pytz.BaseTzInfo:
    return pytz.timezone(settings.marketplace_timezone)


def get_marketplace_now(now: Optional[datetime] = None) -> datetime:
    """
    Current time in the marketplace timezone.

    Args:
        now: Timezone-aware instant to convert instead of the current time
    """
    tz = get_marketplace_timezone()
    if now is None:
        return datetime.now(tz)
    return now.astimezone(tz)


def get_marketplace_today(now: Optional[datetime] = None) -> date:
    """Today's date in the marketplace timezone."""
    return get_marketplace_now(now).date()
