import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from freezegun import freeze_time
from sqlalchemy.exc import OperationalError

from coursetrack.app_state import build_context, set_context
from coursetrack.config import settings
from coursetrack.core.security import issue_token
from coursetrack.core.time_provider import FixedTimeProvider
from coursetrack.db import get_db
from coursetrack.main import app
from coursetrack.models import ActivityLog, Allocation, Facilitator, Role
from coursetrack.notifications.core import NotificationQueue
from coursetrack.notifications.models import MailResult, NotificationKind
from coursetrack.notifications.transports.base import MailTransport

from factories import TempDatabase, kigali, seed_allocation, seed_log, seed_user


class NullTransport(MailTransport):
    name = 'null'

    async def send(self, from_address, to_addresses, subject, html_body):
        return MailResult(ok=True)


def _status_payload(status='Done'):
    return {
        'formative_one_grading': status,
        'formative_two_grading': status,
        'summative_grading': status,
        'course_moderation': status,
        'intranet_sync': status,
        'grade_book_status': status,
    }


class ApiTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._db = TempDatabase('test_activity_tracker_api')

        def _get_test_db():
            db = cls._db.session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_test_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        app.dependency_overrides.pop(get_db, None)
        cls._db.dispose()

    def setUp(self):
        self._db.reset()
        self.ctx = build_context(
            session_factory=self._db.session_factory,
            transport=NullTransport(),
            time_provider=FixedTimeProvider(kigali(2025, 1, 30, 1, 0)),
        )
        set_context(self.ctx)
        db = self._db.session_factory()
        try:
            self.manager = seed_user(db, 'manager@example.com', role=Role.MANAGER.value)
            self.allocation = seed_allocation(db, year=2020)
            self.facilitator_user_id = db.get(Facilitator, self.allocation.facilitator_id).user_id
            self.other_allocation = seed_allocation(db, facilitator_email='other@example.com', class_name='J2024', year=2020)
            self.student = seed_user(db, 'student@example.com', role=Role.STUDENT.value)
            self.allocation_id = self.allocation.id
            self.facilitator_id = self.allocation.facilitator_id
            self.other_allocation_id = self.other_allocation.id
            self.manager_id = self.manager.id
            self.student_id = self.student.id
        finally:
            db.close()

    def _headers(self, user_id, role, email='user@example.com'):
        return {'Authorization': f'Bearer {issue_token(user_id, role, email)}'}

    def _facilitator(self):
        return self._headers(self.facilitator_user_id, Role.FACILITATOR.value, 'fac@example.com')

    def _manager(self):
        return self._headers(self.manager_id, Role.MANAGER.value, 'manager@example.com')

    def _create(self, week=1, status='Done', headers=None, allocation_id=None):
        body = {'allocation_id': allocation_id or self.allocation_id, 'week_number': week, **_status_payload(status)}
        return self.client.post('/api/activity-tracker', json=body, headers=headers or self._facilitator())

    def _alerts(self):
        return [job for job in self.ctx.queue.list_jobs() if job.kind is NotificationKind.alert]


class ActivityTrackerApiTests(ApiTestCase):
    def test_health(self):
        self.assertEqual(self.client.get('/health').json(), {'status': 'ok'})

    def test_requires_bearer_token(self):
        self.assertEqual(self.client.get('/api/activity-tracker').status_code, 401)
        bad = {'Authorization': 'Bearer not.a.token'}
        self.assertEqual(self.client.get('/api/activity-tracker', headers=bad).status_code, 401)

    def test_create_queues_submission_alert(self):
        response = self._create(week=2)
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body['activity_log']['week_number'], 2)

        alerts = self._alerts()
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].recipients, ['manager@example.com'])
        self.assertEqual(alerts[0].payload['alert_type'], 'log_submitted')
        self.assertEqual(alerts[0].payload['data']['log_id'], body['activity_log']['id'])
        self.assertEqual(alerts[0].payload['data']['facilitator_email'], 'fac@example.com')

    def test_duplicate_week_conflicts(self):
        self.assertEqual(self._create(week=3).status_code, 201)
        response = self._create(week=3)
        self.assertEqual(response.status_code, 409)
        self.assertIn('already exists', response.json()['detail'])

    def test_week_outside_trimester_is_rejected(self):
        self.assertEqual(self._create(week=13).status_code, 400)
        self.assertEqual(self._create(week=0).status_code, 400)

    def test_week_limit_follows_reminder_setting(self):
        with patch.object(settings, 'reminder_max_weeks', 10):
            self.assertEqual(self._create(week=11).status_code, 400)
            self.assertEqual(self._create(week=10).status_code, 201)

    def test_alert_queue_failure_is_not_reported_as_created(self):
        locked = OperationalError('INSERT INTO notification_jobs', {}, Exception('database is locked'))
        client = TestClient(app, raise_server_exceptions=False)
        with patch.object(NotificationQueue, 'enqueue', side_effect=locked):
            response = client.post(
                '/api/activity-tracker',
                json={'allocation_id': self.allocation_id, 'week_number': 4, **_status_payload()},
                headers=self._facilitator(),
            )
        self.assertNotEqual(response.status_code, 201)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(self._alerts(), [])

    def test_invalid_status_is_rejected(self):
        body = {'allocation_id': self.allocation_id, 'week_number': 1, **_status_payload('Finished')}
        response = self.client.post('/api/activity-tracker', json=body, headers=self._facilitator())
        self.assertEqual(response.status_code, 422)

    def test_facilitator_cannot_log_for_someone_else(self):
        response = self._create(allocation_id=self.other_allocation_id)
        self.assertEqual(response.status_code, 403)

    def test_student_cannot_create_logs(self):
        headers = self._headers(self.student_id, Role.STUDENT.value)
        self.assertEqual(self._create(headers=headers).status_code, 403)

    def test_unknown_allocation_is_not_found(self):
        self.assertEqual(self._create(allocation_id=9999).status_code, 404)

    def test_future_week_is_rejected_by_default(self):
        db = self._db.session_factory()
        try:
            current = seed_allocation(
                db,
                facilitator=db.get(Facilitator, self.facilitator_id),
                class_name='J2025B',
                trimester='T1',
                year=2025,
            )
            current_id = current.id
        finally:
            db.close()
        with freeze_time('2025-01-20 10:00:00'):
            self.assertEqual(self._create(week=5, allocation_id=current_id).status_code, 400)
            self.assertEqual(self._create(week=3, allocation_id=current_id).status_code, 201)

    def test_update_queues_alert_with_changed_fields(self):
        log_id = self._create(week=1, status='Pending').json()['activity_log']['id']
        response = self.client.put(
            f'/api/activity-tracker/{log_id}',
            json={'summative_grading': 'Done', 'attendance': [{'week1': 'done'}]},
            headers=self._facilitator(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['activity_log']['summative_grading'], 'Done')
        updated = [job for job in self._alerts() if job.payload['alert_type'] == 'log_updated']
        self.assertEqual(updated[0].payload['data']['updated_fields'], ['attendance', 'summative_grading'])

    def test_update_to_taken_week_conflicts(self):
        self._create(week=1)
        second = self._create(week=2).json()['activity_log']['id']
        response = self.client.put(f'/api/activity-tracker/{second}', json={'week_number': 1}, headers=self._facilitator())
        self.assertEqual(response.status_code, 409)

    def test_manager_deletes_log(self):
        log_id = self._create(week=1).json()['activity_log']['id']
        response = self.client.delete(f'/api/activity-tracker/{log_id}', headers=self._manager())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f'/api/activity-tracker/{log_id}', headers=self._manager()).status_code, 404)
        deleted = [job for job in self._alerts() if job.payload['alert_type'] == 'log_deleted']
        self.assertEqual(deleted[0].payload['data']['log_id'], log_id)

    def test_list_filters_and_scoping(self):
        db = self._db.session_factory()
        try:
            seed_log(db, self.allocation_id, 1)
            seed_log(db, self.allocation_id, 2, intranet_sync='Pending')
            seed_log(db, self.other_allocation_id, 1, status='Pending')
        finally:
            db.close()

        mine = self.client.get('/api/activity-tracker', headers=self._facilitator()).json()
        self.assertEqual(mine['count'], 2)

        everything = self.client.get('/api/activity-tracker', headers=self._manager()).json()
        self.assertEqual(everything['count'], 3)

        pending = self.client.get('/api/activity-tracker', params={'status': 'Pending'}, headers=self._manager()).json()
        self.assertEqual(pending['count'], 2)

        week_two = self.client.get(
            '/api/activity-tracker',
            params={'week_number': 2, 'allocation_id': self.allocation_id},
            headers=self._manager(),
        ).json()
        self.assertEqual([row['week_number'] for row in week_two['activity_logs']], [2])

    def test_facilitator_cannot_read_foreign_log(self):
        db = self._db.session_factory()
        try:
            foreign = seed_log(db, self.other_allocation_id, 1)
            foreign_id = foreign.id
        finally:
            db.close()
        response = self.client.get(f'/api/activity-tracker/{foreign_id}', headers=self._facilitator())
        self.assertEqual(response.status_code, 403)


class AllocationAndNotificationApiTests(ApiTestCase):
    def test_manager_creates_allocation_with_numeric_trimester(self):
        db = self._db.session_factory()
        try:
            existing = db.get(Allocation, self.allocation_id)
            body = {
                'module_id': existing.module_id,
                'class_id': existing.class_id,
                'facilitator_id': existing.facilitator_id,
                'mode_id': existing.mode_id,
                'trimester': 2,
                'year': 2025,
            }
        finally:
            db.close()
        response = self.client.post('/api/allocations', json=body, headers=self._manager())
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['allocation']['trimester'], 'T2')

        denied = self.client.post('/api/allocations', json=body, headers=self._facilitator())
        self.assertEqual(denied.status_code, 403)

    def test_allocation_filters(self):
        listed = self.client.get('/api/allocations', params={'trimester': 'T1', 'year': 2020}, headers=self._manager()).json()
        self.assertEqual(listed['count'], 2)
        own = self.client.get('/api/allocations', headers=self._facilitator()).json()
        self.assertEqual([row['id'] for row in own['allocations']], [self.allocation_id])
        bad = self.client.get('/api/allocations', params={'trimester': 'T9'}, headers=self._manager())
        self.assertEqual(bad.status_code, 400)

    def test_deleting_allocation_removes_its_logs(self):
        self._create(week=1)
        response = self.client.delete(f'/api/allocations/{self.allocation_id}', headers=self._manager())
        self.assertEqual(response.status_code, 200)
        db = self._db.session_factory()
        try:
            self.assertEqual(db.query(ActivityLog).count(), 0)
        finally:
            db.close()

    def test_notification_endpoints_are_manager_only(self):
        self.assertEqual(self.client.get('/api/notifications/stats', headers=self._facilitator()).status_code, 403)
        stats = self.client.get('/api/notifications/stats', headers=self._manager()).json()['stats']
        self.assertEqual(stats, {'pending': 0, 'processing': 0, 'dead_letter': 0})
        missing = self.client.post('/api/notifications/jobs/999/requeue', headers=self._manager())
        self.assertEqual(missing.status_code, 404)

    def test_on_demand_scan(self):
        db = self._db.session_factory()
        try:
            seed_allocation(
                db,
                facilitator=db.get(Facilitator, self.facilitator_id),
                class_name='J2025C',
                trimester='T1',
                year=2025,
            )
        finally:
            db.close()
        response = self.client.post('/api/notifications/scan', headers=self._manager())
        self.assertEqual(response.status_code, 200)
        summary = response.json()['summary']
        # 30 January is week 5 of T1.
        self.assertEqual(summary['findings'], 4)
        self.assertEqual(summary['reminders_created'], 4)

        jobs = self.client.get('/api/notifications/jobs', params={'status': 'pending'}, headers=self._manager()).json()
        self.assertEqual(jobs['count'], 8)

        last = self.client.get('/api/notifications/scan/last', headers=self._manager()).json()['summary']
        self.assertEqual(last['reminders_created'], 4)


if __name__ == '__main__':
    unittest.main()
