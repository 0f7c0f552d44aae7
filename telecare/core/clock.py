"""
Injected time source. Services never call ``datetime.now()`` directly.

Timestamps are timezone-aware UTC. Calendar days and slot wall times are
read in the schedule's timezone.
"""

from datetime import date, datetime, time, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from telecare.core.config import settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Clock:
    """Current-time provider."""

    timezone: Optional[tzinfo] = None

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().astimezone(self.timezone).date()

    def localize(self, day: date, at: time) -> datetime:
        """Aware datetime for a wall-clock time on the schedule."""
        moment = datetime.combine(day, at)
        if self.timezone is None:
            return moment.astimezone()
        return moment.replace(tzinfo=self.timezone)


class SystemClock(Clock):
    """Wall clock; days follow the schedule's timezone when one is configured."""

    def __init__(self, timezone_name: Optional[str] = None):
        self.timezone = ZoneInfo(timezone_name) if timezone_name else None

    def now(self) -> datetime:
        return utc_now()


system_clock = SystemClock(settings.schedule_timezone)


def get_clock() -> Clock:
    """FastAPI dependency for the current time source."""
    return system_clock
