# gigshift_api/common/clock.py
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app, has_app_context


def business_today() -> date:
    """Calendar date in the configured reference clock (BUSINESS_TIMEZONE)."""
    tz_name = "UTC"
    if has_app_context():
        tz_name = current_app.config.get("BUSINESS_TIMEZONE") or "UTC"
    try:
        tz = ZoneInfo(tz_name)
    except ZoneInfoNotFoundError:
        tz = timezone.utc
    return datetime.now(tz).date()
