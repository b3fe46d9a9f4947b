from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from coursetrack.config import settings


APP_TIMEZONE = settings.app_timezone or "Africa/Kigali"
APP_ZONEINFO = ZoneInfo(APP_TIMEZONE)


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(APP_ZONEINFO)

    def today(self) -> date:
        return self.now().date()

    def utc_now(self) -> datetime:
        """Naive UTC timestamp, the form stored in DateTime columns."""
        return to_utc_naive(self.now())


class FixedTimeProvider(TimeProvider):
    def __init__(self, now: datetime) -> None:
        self._now = ensure_aware(now)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> None:
        self._now = self._now + timedelta(**kwargs)


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        raise ValueError("Naive datetime not allowed in business logic")
    return dt


def to_utc_naive(dt: datetime) -> datetime:
    return ensure_aware(dt).astimezone(timezone.utc).replace(tzinfo=None)


default_time_provider = TimeProvider()
