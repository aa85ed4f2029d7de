from datetime import date, datetime

from doorstep.core.clock import TimeZoneClock

# 21 Jan 2026: ten days left in the month
TODAY = date(2026, 1, 21)


def clock_at(hour: int = 10, minute: int = 0, day: date = TODAY) -> TimeZoneClock:
    """Clock pinned to a wall time in Asia/Kolkata."""
    instant = datetime(day.year, day.month, day.day, hour, minute)
    return TimeZoneClock("Asia/Kolkata", now_fn=lambda: instant)
