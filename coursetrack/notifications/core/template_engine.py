from __future__ import annotations

import json
from typing import Any

from jinja2 import Environment, StrictUndefined
from markupsafe import Markup, escape

from coursetrack.notifications.models import NotificationKind, QueuedJob, RenderedMessage


REMINDER_SUBJECT = "Reminder: Activity Log for Week {{ week_number }} of {{ module_name }}"
REMINDER_BODY = """\
<p>Dear {{ facilitator_name }},</p>
<p>This is a reminder regarding your activity log:</p>
<p><strong>Message:</strong> {{ message }}</p>
<p>Please ensure you complete or update it soon.</p>
<p>Thank you.</p>
<p>Course Management System Team</p>
"""

ALERT_SUBJECT = "Manager Alert: Activity Log Notification - {{ alert_type | humanize | upper }}"
ALERT_BODY = """\
<p>Dear Manager,</p>
<p>You have a new alert regarding activity logs:</p>
<p><strong>Alert Type:</strong> {{ alert_type | humanize }}</p>
<p><strong>Message:</strong> {{ message }}</p>
<p><strong>Details:</strong><br>{{ data | pretty_json }}</p>
<p>Please log in to the system for more details.</p>
<p>Course Management System Team</p>
"""


def _humanize(value: str) -> str:
    return str(value).replace("_", " ")


def _pretty_json(value: Any) -> Markup:
    lines = json.dumps(value, indent=2, sort_keys=True, default=str).splitlines()
    return Markup("<br>").join(escape(line) for line in lines)


def _environment(*, autoescape: bool) -> Environment:
    env = Environment(undefined=StrictUndefined, autoescape=autoescape)
    env.filters["humanize"] = _humanize
    env.filters["pretty_json"] = _pretty_json
    return env


class TemplateEngine:
    def __init__(self, *, reminder_sender: str, alert_sender: str) -> None:
        self.subject_env = _environment(autoescape=False)
        self.html_env = _environment(autoescape=True)
        self.senders = {
            NotificationKind.reminder: reminder_sender,
            NotificationKind.alert: alert_sender,
        }
        self.templates = {
            NotificationKind.reminder: (REMINDER_SUBJECT, REMINDER_BODY),
            NotificationKind.alert: (ALERT_SUBJECT, ALERT_BODY),
        }

    def render(self, job: QueuedJob) -> RenderedMessage:
        subject_tpl, body_tpl = self.templates[job.kind]
        subject = self.subject_env.from_string(subject_tpl).render(**job.payload)
        html = self.html_env.from_string(body_tpl).render(**job.payload)
        return RenderedMessage(sender_name=self.senders[job.kind], subject=subject.strip(), html=html)
