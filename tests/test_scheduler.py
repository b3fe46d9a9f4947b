import unittest

from coursetrack.scheduler import SCAN_JOB_ID, ReminderScheduler, _parse_hhmm


class ReminderSchedulerTests(unittest.TestCase):
    def test_parse_hhmm(self):
        self.assertEqual(_parse_hhmm('01:00'), (1, 0))
        self.assertEqual(_parse_hhmm('23:45'), (23, 45))
        self.assertEqual(_parse_hhmm('25:00'), (1, 0))
        self.assertEqual(_parse_hhmm('soon'), (1, 0))

    def test_daily_job_is_single_instance_and_coalesced(self):
        calls = []
        scheduler = ReminderScheduler(lambda: calls.append('scan'), timezone='Africa/Kigali', scan_time='02:30')
        scheduler.start()
        try:
            job = scheduler.scheduler.get_job(SCAN_JOB_ID)
            self.assertIsNotNone(job)
            self.assertEqual(job.max_instances, 1)
            self.assertTrue(job.coalesce)
            fields = {field.name: str(field) for field in job.trigger.fields}
            self.assertEqual(fields['hour'], '2')
            self.assertEqual(fields['minute'], '30')
            self.assertEqual(str(job.trigger.timezone), 'Africa/Kigali')
            self.assertIsNotNone(scheduler.next_run_time())
        finally:
            scheduler.shutdown()
        self.assertEqual(calls, [])

    def test_run_now_invokes_injected_scan(self):
        scheduler = ReminderScheduler(lambda: {'findings': 0}, timezone='Africa/Kigali')
        self.assertEqual(scheduler.run_now(), {'findings': 0})


if __name__ == '__main__':
    unittest.main()
