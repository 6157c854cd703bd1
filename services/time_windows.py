"""
Business Time Windows - Kuala Lumpur (UTC+8) calendar math.

All datetimes handled here are naive UTC, matching how the database stores
timestamps. The rental business day runs from 06:00 to 06:00 local time;
dashboard revenue buckets use plain local calendar boundaries.
"""

import logging
from datetime import datetime, date, timedelta
from typing import Optional, Dict, Tuple, Any

from dateutil import parser as date_parser
from dateutil import tz

logger = logging.getLogger(__name__)

KL_OFFSET = timedelta(hours=8)
DAY = timedelta(days=1)
BUSINESS_DAY_START_HOUR = 6
EPOCH = datetime(1970, 1, 1)


# =============================================================================
# CONVERSION
# =============================================================================

def utcnow() -> datetime:
    return datetime.utcnow()


def to_utc_naive(value: Any) -> Optional[datetime]:
    """
    Normalise a datetime, date or ISO string to a naive UTC datetime.

    Naive inputs are assumed to be UTC already. Anything unparseable
    returns None.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = date_parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            try:
                dt = date_parser.parse(value.strip())
            except (ValueError, OverflowError):
                return None
    else:
        return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(tz.tzutc()).replace(tzinfo=None)
    return dt


def to_kl(dt: datetime) -> datetime:
    """Shift a naive UTC datetime to naive KL wall-clock time."""
    return dt + KL_OFFSET


def from_kl(dt: datetime) -> datetime:
    """Shift a naive KL wall-clock datetime back to naive UTC."""
    return dt - KL_OFFSET


def to_iso_z(dt: Optional[datetime]) -> Optional[str]:
    """2026-01-01T00:00:00.000Z style string for a naive UTC datetime."""
    if dt is None:
        return None
    return dt.isoformat(timespec='milliseconds') + 'Z'


def kl_date_key(dt: datetime) -> str:
    """YYYY-MM-DD of the KL calendar date."""
    return to_kl(dt).strftime('%Y-%m-%d')


def format_kl(dt: datetime, pattern: str = '%d %b, %I:%M %p') -> str:
    """Display a naive UTC datetime in KL time."""
    return to_kl(dt).strftime(pattern)


def kl_today(now: Optional[datetime] = None) -> date:
    return to_kl(now or utcnow()).date()


# =============================================================================
# BUSINESS WINDOWS (06:00 KL day start)
# =============================================================================

def window_start(now: Optional[datetime] = None) -> datetime:
    """Most recent 06:00 KL boundary, as naive UTC."""
    kl_now = to_kl(now or utcnow())
    start = kl_now.replace(hour=BUSINESS_DAY_START_HOUR, minute=0, second=0, microsecond=0)
    if kl_now < start:
        start -= DAY
    return from_kl(start)


def current_business_day(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    start = window_start(now)
    return start, start + DAY


def current_week(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Monday 06:00 KL of the current business week until tomorrow 06:00."""
    daily_start = window_start(now)
    days_since_monday = to_kl(daily_start).weekday()
    return daily_start - timedelta(days=days_since_monday), daily_start + DAY


def current_month(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """The 1st at 06:00 KL of the current business month until tomorrow 06:00."""
    daily_start = window_start(now)
    first = to_kl(daily_start).replace(day=1)
    return from_kl(first), daily_start + DAY


def range_days(days: int, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """The `days` business days ending tomorrow at 06:00 KL."""
    end = window_start(now) + DAY
    return end - timedelta(days=days), end


def range_key_to_iso(range_key: Optional[str], now: Optional[datetime] = None) -> Dict[str, str]:
    """
    Resolve a dashboard range selector to ISO bounds.

    '7d' is the current business week, '30d' the current business month,
    anything else the current business day ('24h').
    """
    if range_key == '7d':
        start, end = current_week(now)
    elif range_key == '30d':
        start, end = current_month(now)
    else:
        range_key = '24h'
        start, end = current_business_day(now)

    return {
        'initial_from': to_iso_z(start),
        'initial_to': to_iso_z(end),
        'range_key': range_key
    }


def business_day_for_key(date_key: str) -> Tuple[datetime, datetime]:
    """06:00 KL on the given YYYY-MM-DD until 24h later, as naive UTC."""
    day = datetime.strptime(date_key, '%Y-%m-%d')
    start = from_kl(day.replace(hour=BUSINESS_DAY_START_HOUR))
    return start, start + DAY


# =============================================================================
# CALENDAR BOUNDARIES (midnight KL) FOR REVENUE BUCKETS
# =============================================================================

def start_of_day_kl(now: Optional[datetime] = None) -> datetime:
    kl_now = to_kl(now or utcnow())
    return from_kl(kl_now.replace(hour=0, minute=0, second=0, microsecond=0))


def start_of_week_kl(now: Optional[datetime] = None) -> datetime:
    """Monday 00:00 KL."""
    day_start = start_of_day_kl(now)
    return day_start - timedelta(days=to_kl(day_start).weekday())


def start_of_month_kl(now: Optional[datetime] = None) -> datetime:
    return from_kl(to_kl(start_of_day_kl(now)).replace(day=1))


def start_of_quarter_kl(now: Optional[datetime] = None) -> datetime:
    kl_day = to_kl(start_of_day_kl(now))
    first_month = (kl_day.month - 1) // 3 * 3 + 1
    return from_kl(kl_day.replace(month=first_month, day=1))


def start_of_year_kl(now: Optional[datetime] = None) -> datetime:
    return from_kl(to_kl(start_of_day_kl(now)).replace(month=1, day=1))


def start_of_period_kl(period: str, now: Optional[datetime] = None) -> datetime:
    """Calendar boundary for daily/weekly/monthly/quarterly/yearly."""
    starts = {
        'daily': start_of_day_kl,
        'weekly': start_of_week_kl,
        'monthly': start_of_month_kl,
        'quarterly': start_of_quarter_kl,
        'yearly': start_of_year_kl,
    }
    return starts.get(period, start_of_month_kl)(now)


def days_until(target: Any, today: Optional[date] = None) -> Optional[int]:
    """Whole days from today (KL) until a date; negative once passed."""
    if target is None or target == '':
        return None
    if isinstance(target, datetime):
        target_date = to_kl(target).date() if target.tzinfo is None else target.date()
    elif isinstance(target, date):
        target_date = target
    else:
        parsed = to_utc_naive(target)
        if parsed is None:
            return None
        target_date = parsed.date()
    return (target_date - (today or kl_today())).days
