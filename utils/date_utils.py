"""
Date helpers for shop-local calendar rules.

Past-date checks, urgency windows and the 24h shipped display all
compare calendar days in the shop's timezone, not server wall-clock.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config.settings import settings


WEEKDAY_FIELDS = (
    "no_production_mon",
    "no_production_tue",
    "no_production_wed",
    "no_production_thu",
    "no_production_fri",
    "no_production_sat",
    "no_production_sun",
)


def local_today(tz_name: Optional[str] = None) -> date:
    """Today's calendar date in the shop timezone."""
    return datetime.now(ZoneInfo(tz_name or settings.shop_timezone)).date()


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def to_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """
    Coerce a store value to a date.

    Accepts date objects, datetimes and ISO strings ("2026-02-14" or
    "2026-02-14T00:00:00Z"). Returns None for empty values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def to_datetime(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Coerce an ISO timestamp (with or without Z) to an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def weekday_field(day: date) -> str:
    """Settings column holding the weekly default block for this weekday."""
    return WEEKDAY_FIELDS[day.weekday()]
