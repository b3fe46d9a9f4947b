import unittest
from datetime import datetime

from jinja2 import UndefinedError

from coursetrack.notifications.core.template_engine import TemplateEngine
from coursetrack.notifications.models import NotificationKind, QueuedJob


def _job(kind, payload):
    return QueuedJob(
        id=1,
        kind=kind,
        dedupe_key='k',
        recipients=['someone@example.com'],
        payload=payload,
        next_attempt_at=datetime(2025, 1, 1),
    )


class TemplateEngineTests(unittest.TestCase):
    def setUp(self):
        self.engine = TemplateEngine(reminder_sender='Course Management System', alert_sender='CMS Alert System')

    def test_reminder(self):
        rendered = self.engine.render(_job(NotificationKind.reminder, {
            'facilitator_name': 'Fiona',
            'week_number': 4,
            'module_name': 'Data & Algorithms',
            'class_name': 'J2025',
            'message': 'Please submit',
        }))
        self.assertEqual(rendered.sender_name, 'Course Management System')
        self.assertEqual(rendered.subject, 'Reminder: Activity Log for Week 4 of Data & Algorithms')
        self.assertIn('<p>Dear Fiona,</p>', rendered.html)
        self.assertIn('Please submit', rendered.html)

    def test_alert_body_escapes_user_data(self):
        rendered = self.engine.render(_job(NotificationKind.alert, {
            'alert_type': 'log_updated',
            'message': 'Manager Alert',
            'data': {'facilitator_name': '<script>x</script>', 'week_number': 2},
        }))
        self.assertEqual(rendered.subject, 'Manager Alert: Activity Log Notification - LOG UPDATED')
        self.assertIn('<strong>Alert Type:</strong> log updated', rendered.html)
        self.assertNotIn('<script>', rendered.html)
        self.assertIn('&lt;script&gt;', rendered.html)
        self.assertIn('<br>', rendered.html)

    def test_missing_payload_field_raises(self):
        with self.assertRaises(UndefinedError):
            self.engine.render(_job(NotificationKind.reminder, {'week_number': 1}))


if __name__ == '__main__':
    unittest.main()
