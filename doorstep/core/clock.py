"""
TimeZoneClock - the single source of "now" for every date decision.

Delivery dates, the pause/modify cutoff and the reconciler's "today" are all
civil dates in one fixed zone (Asia/Kolkata by default). Host time zone is
never consulted. Tests inject `now_fn` to pin the instant.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from doorstep.core.config import settings


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimeZoneClock:
    """Resolves now/today/tomorrow/hour in a fixed civil time zone."""

    def __init__(
        self,
        tz_name: Optional[str] = None,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.tz = ZoneInfo(tz_name or settings.TIMEZONE)
        self._now_fn = now_fn or _utcnow

    def now(self) -> datetime:
        current = self._now_fn()
        if current.tzinfo is None:
            # Naive instants are taken to be wall time in the clock's zone
            return current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def tomorrow(self) -> date:
        return self.today() + timedelta(days=1)

    def hour(self) -> int:
        return self.now().hour

    def start_of_day(self, day: date) -> datetime:
        """Local midnight at the start of `day`."""
        return datetime.combine(day, datetime.min.time(), tzinfo=self.tz)

    def days_since(self, day: date) -> int:
        return (self.today() - day).days


def get_clock() -> TimeZoneClock:
    return TimeZoneClock()
