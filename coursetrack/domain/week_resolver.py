from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


WEEK = timedelta(days=7)


class Trimester(str, Enum):
    T1 = 'T1'
    T2 = 'T2'
    T3 = 'T3'

    @property
    def start_month(self) -> int:
        return _START_MONTHS[self]

    @classmethod
    def parse(cls, value: object) -> 'Trimester | None':
        """Accepts 'T2', 't2', 2 or '2'; anything else is None."""
        if isinstance(value, cls):
            return value
        text = str(value if value is not None else '').strip().upper()
        if text.isdigit():
            text = f'T{text}'
        try:
            return cls(text)
        except ValueError:
            return None


_START_MONTHS = {
    Trimester.T1: 1,
    Trimester.T2: 5,
    Trimester.T3: 9,
}


@dataclass(frozen=True)
class WeekWindow:
    trimester_start: datetime
    current_week: int


def trimester_start(trimester: Trimester, year: int, tzinfo=None) -> datetime:
    return datetime(year, trimester.start_month, 1, tzinfo=tzinfo)


def resolve_week_window(trimester: object, year: int, now: datetime) -> WeekWindow | None:
    """Week window of a trimester as seen from ``now``.

    Returns None (not applicable) when ``year`` is not the calendar year of
    ``now`` or the trimester label is unknown. Moments before the start date
    still count as week 1.
    """
    if int(year) != now.year:
        return None
    parsed = Trimester.parse(trimester)
    if parsed is None:
        return None
    start = trimester_start(parsed, now.year, tzinfo=now.tzinfo)
    week = (now - start) // WEEK + 1
    return WeekWindow(trimester_start=start, current_week=max(1, week))


def resolve_current_week(trimester: object, year: int, now: datetime) -> int | None:
    window = resolve_week_window(trimester, year, now)
    return window.current_week if window else None
