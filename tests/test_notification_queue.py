import unittest
from datetime import timedelta

from coursetrack.core.time_provider import FixedTimeProvider
from coursetrack.models import NotificationJobStatus
from coursetrack.notifications.core import NotificationDispatcher, NotificationQueue, RetryEngine
from coursetrack.notifications.models import AlertType, NotificationKind

from factories import TempDatabase, kigali


class NotificationQueueTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._db = TempDatabase('test_notification_queue')

    @classmethod
    def tearDownClass(cls):
        cls._db.dispose()

    def setUp(self):
        self._db.reset()
        self.clock = FixedTimeProvider(kigali(2025, 2, 10, 1, 0))
        self.queue = NotificationQueue(
            self._db.session_factory,
            RetryEngine(base_seconds=1.0, max_attempts=3),
            time_provider=self.clock,
        )
        self.dispatcher = NotificationDispatcher(self.queue)

    def _remind(self, week=3):
        return self.dispatcher.dispatch_reminder('fac@example.com', 'Fiona', week, 'Web Dev', 'J2025')

    def test_identical_reminders_create_one_job(self):
        first = self._remind()
        second = self._remind()
        self.assertTrue(first.created)
        self.assertFalse(second.created)
        self.assertEqual(first.job.id, second.job.id)
        self.assertEqual(first.job.dedupe_key, 'reminder:fac@example.com:Web Dev:J2025:3')
        self.assertEqual(self.queue.stats()['pending'], 1)

    def test_reminder_payload(self):
        job = self._remind(week=4).job
        self.assertEqual(job.kind, NotificationKind.reminder)
        self.assertEqual(job.recipients, ['fac@example.com'])
        self.assertEqual(job.payload['week_number'], 4)
        self.assertIn('Module: Web Dev, Class: J2025, Week 4', job.payload['message'])
        self.assertEqual(job.max_attempts, 3)

    def test_alert_without_managers_is_a_noop(self):
        with self.assertLogs('coursetrack.notifications.core.dispatcher', level='WARNING'):
            result = self.dispatcher.dispatch_alert([], AlertType.log_submitted, {'log_id': 1})
        self.assertIsNone(result)
        self.assertEqual(self.queue.list_jobs(), [])

    def test_alerts_are_not_deduplicated(self):
        data = {'log_id': 7, 'allocation_id': 1, 'week_number': 2}
        first = self.dispatcher.dispatch_alert(['m1@example.com', 'm2@example.com'], AlertType.log_updated, data)
        second = self.dispatcher.dispatch_alert(['m1@example.com', 'm2@example.com'], AlertType.log_updated, data)
        self.assertNotEqual(first.job.id, second.job.id)
        self.assertEqual(first.job.recipients, ['m1@example.com', 'm2@example.com'])
        self.assertIn('log ID 7', first.job.payload['message'])
        self.assertEqual(len(self.queue.list_jobs(NotificationJobStatus.PENDING)), 2)

    def test_claim_hands_job_to_one_worker(self):
        self._remind()
        claimed = self.queue.claim_next('worker-a')
        self.assertEqual(claimed.status, NotificationJobStatus.PROCESSING)
        self.assertIsNone(self.queue.claim_next('worker-b'))

    def test_reminder_stays_deduplicated_while_processing_and_dead_letter(self):
        job = self._remind().job
        self.queue.claim_next('w')
        self.assertFalse(self._remind().created)
        for _ in range(3):
            self.queue.fail(job.id, 'smtp down')
            self.clock.advance(seconds=10)
            self.queue.claim_next('w')
        self.assertEqual(self.queue.get(job.id).status, NotificationJobStatus.DEAD_LETTER)
        self.assertFalse(self._remind().created)

    def test_completed_job_frees_the_key(self):
        job = self._remind().job
        self.queue.claim_next('w')
        self.assertTrue(self.queue.complete(job.id))
        self.assertIsNone(self.queue.get(job.id))
        self.assertTrue(self._remind().created)

    def test_failure_backoff_doubles(self):
        job = self._remind().job
        self.queue.claim_next('w')
        failed = self.queue.fail(job.id, 'timeout')
        self.assertEqual(failed.status, NotificationJobStatus.PENDING)
        self.assertEqual(failed.attempt_count, 1)
        self.assertEqual(failed.last_error, 'timeout')
        self.assertEqual(failed.next_attempt_at, self.clock.utc_now() + timedelta(seconds=1))
        self.assertIsNone(self.queue.claim_next('w'))

        self.clock.advance(seconds=1)
        self.assertIsNotNone(self.queue.claim_next('w'))
        failed = self.queue.fail(job.id, 'timeout')
        self.assertEqual(failed.next_attempt_at, self.clock.utc_now() + timedelta(seconds=2))

    def test_third_failure_dead_letters(self):
        job = self._remind().job
        for attempt in range(1, 4):
            self.assertIsNotNone(self.queue.claim_next('w'))
            failed = self.queue.fail(job.id, f'attempt {attempt}')
            self.clock.advance(seconds=60)
        self.assertEqual(failed.status, NotificationJobStatus.DEAD_LETTER)
        self.assertEqual(failed.attempt_count, 3)
        self.assertIsNone(self.queue.claim_next('w'))
        self.assertEqual(self.queue.stats(), {'pending': 0, 'processing': 0, 'dead_letter': 1})

    def test_requeue_dead_letter(self):
        job = self._remind().job
        for _ in range(3):
            self.queue.claim_next('w')
            self.queue.fail(job.id, 'nope')
            self.clock.advance(seconds=60)
        requeued = self.queue.requeue(job.id)
        self.assertEqual(requeued.status, NotificationJobStatus.PENDING)
        self.assertEqual(requeued.attempt_count, 0)
        self.assertIsNotNone(self.queue.claim_next('w'))
        self.assertIsNone(self.queue.requeue(job.id))

    def test_recover_stale_processing_jobs(self):
        job = self._remind().job
        self.queue.claim_next('crashed-worker')
        self.assertEqual(self.queue.recover_stale(300), 0)
        self.clock.advance(seconds=301)
        self.assertEqual(self.queue.recover_stale(300), 1)
        reclaimed = self.queue.claim_next('w2')
        self.assertEqual(reclaimed.id, job.id)
        self.assertEqual(reclaimed.attempt_count, 0)

    def test_late_report_from_previous_claimant_is_ignored(self):
        job = self._remind().job
        self.queue.claim_next('worker-a')
        self.clock.advance(seconds=301)
        self.queue.recover_stale(300)
        self.assertEqual(self.queue.claim_next('worker-b').id, job.id)

        self.assertIsNone(self.queue.fail(job.id, 'smtp down', worker_id='worker-a'))
        self.assertFalse(self.queue.complete(job.id, worker_id='worker-a'))
        stored = self.queue.get(job.id)
        self.assertEqual(stored.status, NotificationJobStatus.PROCESSING)
        self.assertEqual(stored.attempt_count, 0)
        self.assertEqual(stored.claimed_by, 'worker-b')

        self.assertTrue(self.queue.complete(job.id, worker_id='worker-b'))
        self.assertIsNone(self.queue.get(job.id))


if __name__ == '__main__':
    unittest.main()
