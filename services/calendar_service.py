"""
Delivery calendar rules.

Pure date arithmetic shared by every ordering screen:
- Next / previous allowed delivery day for a supplier
- Cutoff instant (default noon the day before delivery)
- Urgency stage of the week before delivery

Weekdays use 0 = Sunday ... 6 = Saturday, the convention of the supplier
configuration.
"""

import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Optional, Union
from zoneinfo import ZoneInfo

from config.settings import settings
from models.order import UrgencyStage
from models.supplier import DeliveryDates
from exceptions import InvalidDeliveryDateError

# Upper bound of a forward/backward scan. Twice the widest possible gap
# between two allowed weekdays, so any non-empty set is found.
SCAN_LIMIT_DAYS = 14

DEFAULT_CUTOFF_HOUR = 12
DEFAULT_CUTOFF_MINUTE = 0

DateLike = Union[date, datetime, str, None]

ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


# ===================
# HELPERS
# ===================

def sunday_weekday(day: date) -> int:
    """Weekday number with 0 = Sunday ... 6 = Saturday."""
    return day.isoweekday() % 7


def parse_iso_date(value: DateLike) -> Optional[date]:
    """
    Parse YYYY-MM-DD (or pass through a date).

    Returns None for anything that is not a valid calendar date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not ISO_DATE_RE.fullmatch(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def require_iso_date(value: DateLike) -> date:
    """
    Parse a delivery date that must be valid.

    Raises:
        InvalidDeliveryDateError: If value is not a YYYY-MM-DD date
    """
    parsed = parse_iso_date(value)
    if parsed is None:
        raise InvalidDeliveryDateError(value)
    return parsed


def local_tz() -> tzinfo:
    """Timezone configured for cutoffs."""
    return ZoneInfo(settings.timezone)


def local_now() -> datetime:
    """Current time in the configured timezone."""
    return datetime.now(local_tz())


# ===================
# DELIVERY DAYS
# ===================

def next_allowed_date(from_date: date, allowed_weekdays: Iterable[int]) -> date:
    """
    First allowed delivery day on or after from_date.

    With an empty weekday set the scan stops at its bound and returns the
    boundary date.
    """
    allowed = set(allowed_weekdays)
    day = parse_iso_date(from_date)
    for _ in range(SCAN_LIMIT_DAYS):
        if sunday_weekday(day) in allowed:
            return day
        day += timedelta(days=1)
    return day


def previous_allowed_date(from_date: date, allowed_weekdays: Iterable[int]) -> date:
    """Last allowed delivery day strictly before from_date."""
    allowed = set(allowed_weekdays)
    day = parse_iso_date(from_date) - timedelta(days=1)
    for _ in range(SCAN_LIMIT_DAYS):
        if sunday_weekday(day) in allowed:
            return day
        day -= timedelta(days=1)
    return day


def normalize_delivery(
    requested: DateLike,
    allowed_weekdays: Iterable[int],
    today: date,
) -> DeliveryDates:
    """
    Pick the delivery date to work on.

    - Missing, unparseable or past requested date → next allowed day from today
    - Otherwise the requested date is kept as is
    Also returns the last allowed day before today ("last week's delivery").
    """
    allowed = list(allowed_weekdays)
    parsed = parse_iso_date(requested)
    if parsed is None or parsed < today:
        delivery = next_allowed_date(today, allowed)
    else:
        delivery = parsed

    return DeliveryDates(
        delivery_date=delivery,
        last_delivery_date=previous_allowed_date(today, allowed),
        today=today,
    )


# ===================
# CUTOFF & STAGES
# ===================

def cutoff_instant(
    delivery_date: date,
    hour: int = DEFAULT_CUTOFF_HOUR,
    minute: int = DEFAULT_CUTOFF_MINUTE,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """hour:minute on the calendar day before delivery."""
    day_before = parse_iso_date(delivery_date) - timedelta(days=1)
    return datetime.combine(day_before, time(hour, minute), tzinfo=tz)


def urgency_stage(
    delivery_date: date,
    now: datetime,
    cutoff_hour: int = DEFAULT_CUTOFF_HOUR,
    cutoff_minute: int = DEFAULT_CUTOFF_MINUTE,
) -> UrgencyStage:
    """
    Stage of the ordering week for a delivery on day D.

    calm       D-6 00:00 → D-4 end of day (and anything earlier)
    finalize   D-3 00:00 → D-2 cutoff time
    last_call  after D-2 cutoff time → D-1 cutoff time
    locked     after D-1 cutoff time
    """
    delivery = parse_iso_date(delivery_date)

    def at(days_before: int, hour: int = 0, minute: int = 0) -> datetime:
        return datetime.combine(
            delivery - timedelta(days=days_before),
            time(hour, minute),
            tzinfo=now.tzinfo,
        )

    if now > at(1, cutoff_hour, cutoff_minute):
        return UrgencyStage.LOCKED
    if now > at(2, cutoff_hour, cutoff_minute):
        return UrgencyStage.LAST_CALL
    if now >= at(3):
        return UrgencyStage.FINALIZE
    return UrgencyStage.CALM
