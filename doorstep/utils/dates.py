"""Calendar helpers shared by billing and the calendar view."""
import calendar
from datetime import date, timedelta
from typing import Iterator

from doorstep.utils.errors import ValidationError


def days_in_month(year: int, month: int) -> int:
    """Number of days in a month (month is 1-12)."""
    if not 1 <= year <= 9999:
        raise ValidationError(f"Year must be 1-9999, got {year}")
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be 1-12, got {month}")
    return calendar.monthrange(year, month)[1]


def month_dates(year: int, month: int) -> Iterator[date]:
    count = days_in_month(year, month)
    first = date(year, month, 1)
    for offset in range(count):
        yield first + timedelta(days=offset)
