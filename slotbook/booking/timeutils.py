"""Conversions between the clinic's local calendar and stored UTC instants.

Instants are stored as naive UTC datetimes; dates and times the user sees are
local to ``config.APP_TIMEZONE``.
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from slotbook.core import config
from slotbook.core.errors import ValidationError


def local_zone() -> ZoneInfo:
    return ZoneInfo(config.APP_TIMEZONE)


def local_to_utc(day: date, at: time) -> datetime:
    local_start = datetime.combine(day, at).replace(tzinfo=local_zone())
    return local_start.astimezone(timezone.utc).replace(tzinfo=None)


def local_today() -> date:
    return datetime.now(local_zone()).date()


def utc_to_local(instant: datetime) -> datetime:
    return instant.replace(tzinfo=timezone.utc).astimezone(local_zone()).replace(tzinfo=None)


def local_date_of(instant: datetime) -> date:
    return utc_to_local(instant).date()


def local_time_of(instant: datetime) -> time:
    return utc_to_local(instant).time().replace(second=0, microsecond=0)


def local_day_bounds(date_from: date, date_to: date) -> tuple[datetime, datetime]:
    """UTC [start, end) covering every local instant from date_from through date_to."""
    return (
        local_to_utc(date_from, time(0, 0)),
        local_to_utc(date_to + timedelta(days=1), time(0, 0)),
    )


def iterate_days(date_from: date, date_to: date):
    current = date_from
    while current <= date_to:
        yield current
        current += timedelta(days=1)


def validate_date_range(date_from: date, date_to: date, max_days: int | None = None) -> None:
    if date_from > date_to:
        raise ValidationError('date_from must be on or before date_to.')
    if max_days is not None and (date_to - date_from).days + 1 > max_days:
        raise ValidationError(f'Date range may cover at most {max_days} days.')


def parse_local_date(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        raise ValidationError('Invalid date format, expected YYYY-MM-DD.') from exc
