import logging
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler


logger = logging.getLogger(__name__)

SCAN_JOB_ID = 'missing_activity_logs'


def _parse_hhmm(value: str, default_hour: int = 1, default_minute: int = 0) -> tuple[int, int]:
    try:
        hour_raw, minute_raw = (value or '').split(':', 1)
        hour = int(hour_raw)
        minute = int(minute_raw)
        if hour < 0 or hour > 23 or minute < 0 or minute > 59:
            raise ValueError
        return hour, minute
    except ValueError:
        logger.warning('invalid_scan_time value=%r fallback=%02d:%02d', value, default_hour, default_minute)
        return default_hour, default_minute


class ReminderScheduler:
    """Daily trigger for the missing activity log scan.

    The scan callable is injected; it owns its own locking and session
    handling. APScheduler keeps at most one instance of the job in flight and
    collapses missed firings into one.
    """

    def __init__(self, scan: Callable[[], object], *, timezone: str, scan_time: str = '01:00') -> None:
        self.scan = scan
        self.timezone = timezone
        self.hour, self.minute = _parse_hhmm(scan_time)
        self.scheduler = BackgroundScheduler(timezone=timezone)

    def start(self) -> None:
        self.scheduler.add_job(
            self.run_now,
            'cron',
            hour=self.hour,
            minute=self.minute,
            id=SCAN_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info('reminder_scheduler_started at=%02d:%02d tz=%s', self.hour, self.minute, self.timezone)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def run_now(self) -> object:
        return self.scan()

    def next_run_time(self):
        job = self.scheduler.get_job(SCAN_JOB_ID)
        return getattr(job, 'next_run_time', None) if job else None
