from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from sqlalchemy.orm import sessionmaker

from coursetrack.config import settings
from coursetrack.core.time_provider import TimeProvider, default_time_provider
from coursetrack.db import SessionLocal
from coursetrack.domain.jobs import missing_activity_logs
from coursetrack.notifications.core import NotificationDispatcher, NotificationQueue, RetryEngine, TemplateEngine
from coursetrack.notifications.transports import MailTransport, SmtpTransport
from coursetrack.notifications.workers import NotificationWorker
from coursetrack.scheduler import ReminderScheduler


@dataclass
class AppContext:
    queue: NotificationQueue
    dispatcher: NotificationDispatcher
    template_engine: TemplateEngine
    retry_engine: RetryEngine
    transport: MailTransport
    worker: NotificationWorker
    scheduler: ReminderScheduler
    time_provider: TimeProvider
    session_factory: sessionmaker

    def run_scan(self) -> dict | None:
        return missing_activity_logs.execute(
            self.dispatcher,
            time_provider=self.time_provider,
            session_factory=self.session_factory,
        )


_ctx: AppContext | None = None


def build_context(
    *,
    session_factory: sessionmaker = SessionLocal,
    transport: MailTransport | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> AppContext:
    retry_engine = RetryEngine(
        base_seconds=settings.notification_backoff_base_seconds,
        max_attempts=settings.notification_max_attempts,
    )
    queue = NotificationQueue(session_factory, retry_engine, time_provider=time_provider)
    dispatcher = NotificationDispatcher(queue)
    template_engine = TemplateEngine(
        reminder_sender=settings.reminder_sender_name,
        alert_sender=settings.alert_sender_name,
    )
    mail_transport = transport or SmtpTransport()
    worker = NotificationWorker(
        queue,
        template_engine,
        mail_transport,
        sender_email=settings.sender_email,
        poll_interval_seconds=settings.notification_poll_interval_seconds,
        stale_timeout_seconds=settings.notification_processing_timeout_seconds,
    )
    scheduler = ReminderScheduler(
        partial(
            missing_activity_logs.execute,
            dispatcher,
            time_provider=time_provider,
            session_factory=session_factory,
        ),
        timezone=settings.app_timezone,
        scan_time=settings.reminder_scan_time,
    )
    return AppContext(
        queue=queue,
        dispatcher=dispatcher,
        template_engine=template_engine,
        retry_engine=retry_engine,
        transport=mail_transport,
        worker=worker,
        scheduler=scheduler,
        time_provider=time_provider,
        session_factory=session_factory,
    )


def set_context(ctx: AppContext) -> None:
    global _ctx
    _ctx = ctx


def get_context() -> AppContext:
    if _ctx is None:
        set_context(build_context())
    return _ctx
