"""
Date helpers for billing periods and monthly usage keys.

All timestamps are stored as naive UTC. Calendar months for usage
counters are evaluated in the service timezone (Asia/Seoul by default),
so a user in Seoul gets a fresh quota at local midnight on the 1st.
"""
import calendar
from datetime import datetime, timedelta, timezone

import pytz
from flask import current_app, has_app_context

DEFAULT_SERVICE_TIMEZONE = 'Asia/Seoul'


def utcnow():
    """Current time as naive UTC (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _service_tz():
    name = DEFAULT_SERVICE_TIMEZONE
    if has_app_context():
        name = current_app.config.get('SERVICE_TIMEZONE') or DEFAULT_SERVICE_TIMEZONE
    return pytz.timezone(name)


def to_service_time(dt):
    """Convert a naive UTC datetime to an aware datetime in the service timezone."""
    return pytz.utc.localize(dt).astimezone(_service_tz())


def current_year_month(now=None):
    """Usage key for the calendar month containing ``now`` (naive UTC), e.g. '2026-10'."""
    local = to_service_time(now or utcnow())
    return f'{local.year:04d}-{local.month:02d}'


def month_bounds_utc(year_month):
    """Return the [start, end) naive UTC bounds of a 'YYYY-MM' month in the service timezone."""
    year, month = (int(part) for part in year_month.split('-'))
    tz = _service_tz()
    start = tz.localize(datetime(year, month, 1))
    if month == 12:
        end = tz.localize(datetime(year + 1, 1, 1))
    else:
        end = tz.localize(datetime(year, month + 1, 1))
    return (
        start.astimezone(pytz.utc).replace(tzinfo=None),
        end.astimezone(pytz.utc).replace(tzinfo=None),
    )


def add_months(dt, months=1):
    """Add calendar months, clamping to the last day of the target month.

    Jan 31 + 1 month is Feb 28 (or 29), never a day in March.
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def add_days(dt, days):
    return dt + timedelta(days=days)


def format_korean_date(dt):
    """Short Korean date as shown on receipts: '2026. 11. 17.'"""
    if dt is None:
        return None
    local = to_service_time(dt)
    return f'{local.year}. {local.month}. {local.day}.'


def format_korean_long_date(dt):
    """Long Korean date: '2026년 11월 17일'"""
    local = to_service_time(dt)
    return f'{local.year}년 {local.month}월 {local.day}일'


def isoformat_utc(dt):
    """ISO-8601 with an explicit Z suffix, or None."""
    if dt is None:
        return None
    return dt.isoformat(timespec='milliseconds') + 'Z'


def parse_gateway_timestamp(value):
    """Parse an ISO-8601 timestamp with offset (e.g. Toss ``approvedAt``) to naive UTC.

    Returns the current time when the value is missing or unparseable.
    """
    if not value:
        return utcnow()
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (AttributeError, TypeError, ValueError):
        return utcnow()
    if parsed.tzinfo is None:
        return parsed
    return parsed.astimezone(timezone.utc).replace(tzinfo=None)
