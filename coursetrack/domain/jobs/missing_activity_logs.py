from __future__ import annotations

import logging
from datetime import datetime
from functools import partial

from sqlalchemy.orm import Session, sessionmaker

from coursetrack.cache import cache, cache_key
from coursetrack.config import settings
from coursetrack.core.time_provider import TimeProvider, default_time_provider
from coursetrack.db import SessionLocal
from coursetrack.domain.deadline_scanner import MAX_WEEKS_PER_TRIMESTER, Finding, FindingReason, scan
from coursetrack.domain.jobs.runtime import run_job
from coursetrack.notifications.core.dispatcher import NotificationDispatcher
from coursetrack.notifications.models import AlertType
from coursetrack.services.read_model import find_log, list_allocation_contexts, list_manager_emails


logger = logging.getLogger(__name__)

JOB_LABEL = 'missing_activity_logs'
LAST_SUMMARY_KEY = cache_key('scan_summary', JOB_LABEL)
LAST_SUMMARY_TTL = 7 * 24 * 3600


def _alert_data(finding: Finding) -> dict:
    allocation = finding.allocation
    data = {
        'allocation_id': allocation.allocation_id,
        'week_number': finding.week_number,
        'facilitator_email': allocation.facilitator_email,
        'facilitator_name': allocation.facilitator_name,
        'module_name': allocation.module_name,
        'class_name': allocation.class_name,
        'reason': finding.reason.value,
    }
    if finding.reason is FindingReason.INCOMPLETE_LOG:
        data['log_id'] = finding.log_id
    return data


def check_and_queue_missing_logs(
    db: Session,
    dispatcher: NotificationDispatcher,
    now: datetime,
    *,
    max_weeks: int = MAX_WEEKS_PER_TRIMESTER,
) -> dict:
    """Scan every allocation and queue a reminder plus a manager alert per finding."""
    allocations = list_allocation_contexts(db)
    findings = scan(allocations, partial(find_log, db), now, max_weeks=max_weeks)
    manager_emails = list_manager_emails(db) if findings else []

    reminders_created = 0
    alerts_created = 0
    for finding in findings:
        allocation = finding.allocation
        reminder = dispatcher.dispatch_reminder(
            allocation.facilitator_email,
            allocation.facilitator_name,
            finding.week_number,
            allocation.module_name,
            allocation.class_name,
        )
        if reminder.created:
            reminders_created += 1
        if dispatcher.dispatch_alert(manager_emails, AlertType.deadline_missed, _alert_data(finding)) is not None:
            alerts_created += 1

    summary = {
        'allocations': len(allocations),
        'findings': len(findings),
        'missing': sum(1 for f in findings if f.reason is FindingReason.MISSING_LOG),
        'incomplete': sum(1 for f in findings if f.reason is FindingReason.INCOMPLETE_LOG),
        'reminders_created': reminders_created,
        'alerts_created': alerts_created,
    }
    logger.info(
        'missing_logs_scan_done allocations=%s findings=%s reminders_created=%s alerts_created=%s',
        summary['allocations'],
        summary['findings'],
        reminders_created,
        alerts_created,
    )
    return summary


def execute(
    dispatcher: NotificationDispatcher,
    *,
    time_provider: TimeProvider = default_time_provider,
    session_factory: sessionmaker = SessionLocal,
) -> dict | None:
    """Run one locked scan; None means another run held the lock."""
    summary = run_job(
        JOB_LABEL,
        lambda db: check_and_queue_missing_logs(
            db,
            dispatcher,
            time_provider.now(),
            max_weeks=settings.reminder_max_weeks,
        ),
        lock_ttl_seconds=settings.reminder_lock_ttl_seconds,
        session_factory=session_factory,
    )
    if summary is not None:
        cache.set_cached(LAST_SUMMARY_KEY, {**summary, 'finished_at': time_provider.now().isoformat()}, ttl=LAST_SUMMARY_TTL)
    return summary


def last_summary() -> dict | None:
    return cache.get_cached(LAST_SUMMARY_KEY)
