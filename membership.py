import calendar
from datetime import date, datetime, time, timedelta
from typing import Any, Literal, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError

MembershipStatus = Literal['Active', 'Expired', 'Unknown']

_datetime_adapter = TypeAdapter(datetime)


def now_local() -> datetime:
    return datetime.now()


def midnight(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def to_datetime(value: Any, field: str) -> datetime:
    """Parse a date-ish value (datetime, date, ISO string, epoch number) into a naive datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        try:
            parsed = _datetime_adapter.validate_python(value)
        except PydanticValidationError:
            raise ValidationError(f"{field}: invalid date {value!r}", [{'loc': [field], 'msg': 'invalid date'}])
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def add_months(start: datetime, months: int) -> datetime:
    """
    Return ``start`` moved forward by ``months`` calendar months, at local midnight.

    When the day does not exist in the target month the surplus days roll into
    the following month: 2024-01-31 + 1 month is 2024-03-02, and
    2023-01-31 + 1 month is 2023-03-03.
    """
    total = start.month - 1 + months
    year = start.year + total // 12
    month = total % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    if start.day <= last_day:
        target = date(year, month, start.day)
    else:
        target = date(year, month, last_day) + timedelta(days=start.day - last_day)
    return datetime.combine(target, time.min)


def membership_end_date(start: datetime, duration: Any) -> datetime:
    if isinstance(duration, bool):
        duration = None
    try:
        months = int(duration)
        if months != float(duration):
            raise ValueError(duration)
    except (TypeError, ValueError):
        raise ValidationError(
            f"membershipDuration: invalid number of months {duration!r}",
            [{'loc': ['membershipDuration'], 'msg': 'must be a whole number of months'}],
        )
    try:
        return add_months(start, months)
    except (ValueError, OverflowError):
        raise ValidationError(
            f"membershipDuration: {months} months from {start:%Y-%m-%d} is outside the calendar",
            [{'loc': ['membershipDuration'], 'msg': 'end date out of range'}],
        )


def membership_status(end_date: Optional[datetime], now: Optional[datetime] = None) -> MembershipStatus:
    if end_date is None:
        return 'Unknown'
    now = now or now_local()
    if now > end_date:
        return 'Expired'
    return 'Active'


def is_expiring_soon(end_date: Optional[datetime], days: int, now: Optional[datetime] = None) -> bool:
    """Active memberships ending within ``days`` days."""
    if end_date is None:
        return False
    now = now or now_local()
    return now <= end_date <= now + timedelta(days=days)
