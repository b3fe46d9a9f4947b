from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Iterable

from coursetrack.notifications.core.job_queue import NotificationQueue
from coursetrack.notifications.models import AlertType, EnqueueResult, NotificationKind


logger = logging.getLogger(__name__)


def reminder_dedupe_key(facilitator_email: str, module_name: str, class_name: str, week_number: int) -> str:
    return f'reminder:{facilitator_email}:{module_name}:{class_name}:{int(week_number)}'


class NotificationDispatcher:
    """Turns reminders and manager alerts into queued notification jobs.

    Dispatch returns as soon as the job row is persisted; delivery happens in
    the worker. Database errors while enqueueing propagate to the caller.
    """

    def __init__(self, queue: NotificationQueue) -> None:
        self.queue = queue

    def dispatch_reminder(
        self,
        facilitator_email: str,
        facilitator_name: str,
        week_number: int,
        module_name: str,
        class_name: str,
    ) -> EnqueueResult:
        payload = {
            'to_email': facilitator_email,
            'facilitator_name': facilitator_name,
            'week_number': int(week_number),
            'module_name': module_name,
            'class_name': class_name,
            'message': (
                'Reminder: You have not submitted or completed your activity log for '
                f'Module: {module_name}, Class: {class_name}, Week {int(week_number)}. '
                'Please submit it as soon as possible.'
            ),
        }
        result = self.queue.enqueue(
            NotificationKind.reminder,
            [facilitator_email],
            payload,
            dedupe_key=reminder_dedupe_key(facilitator_email, module_name, class_name, week_number),
        )
        if result.created:
            logger.info('reminder_queued facilitator=%s week=%s job_id=%s', facilitator_name, week_number, result.job.id)
        return result

    def dispatch_alert(
        self,
        manager_emails: Iterable[str],
        alert_type: AlertType | str,
        data: dict[str, Any],
    ) -> EnqueueResult | None:
        recipients = [email for email in (manager_emails or []) if email]
        alert = AlertType(alert_type)
        if not recipients:
            logger.warning('alert_not_queued alert_type=%s reason=no_manager_emails', alert.value)
            return None

        details = dict(data)
        payload = {
            'alert_type': alert.value,
            'data': details,
            'message': (
                f'Manager Alert: {alert.value} event for log ID {details.get("log_id") or "N/A"}. '
                f'Details: {json.dumps(details, sort_keys=True, default=str)}.'
            ),
        }
        result = self.queue.enqueue(
            NotificationKind.alert,
            recipients,
            payload,
            dedupe_key=f'alert:{alert.value}:{uuid.uuid4().hex}',
        )
        logger.info('alert_queued alert_type=%s recipients=%s job_id=%s', alert.value, len(recipients), result.job.id)
        return result
