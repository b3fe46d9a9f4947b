import unittest
from datetime import timedelta
from types import SimpleNamespace

from coursetrack.domain.deadline_scanner import AllocationContext, FindingReason, scan, scan_allocation
from coursetrack.models import ACTIVITY_STATUS_FIELDS

from factories import kigali


def _allocation(allocation_id=1, trimester='T1', year=2025):
    return AllocationContext(
        allocation_id=allocation_id,
        trimester=trimester,
        year=year,
        facilitator_email='fac@example.com',
        facilitator_name='Fiona',
        module_name='Web Dev',
        class_name='J2025',
    )


def _log(log_id, status='Done', **overrides):
    values = {name: status for name in ACTIVITY_STATUS_FIELDS}
    values.update(overrides)
    return SimpleNamespace(id=log_id, **values)


def _lookup(logs):
    return lambda allocation_id, week: logs.get((allocation_id, week))


# T1 2025 starts 1 January; 29 days later is week 5.
WEEK_FIVE = kigali(2025, 1, 1) + timedelta(days=29)


class DeadlineScannerTests(unittest.TestCase):
    def test_missing_logs_for_every_past_week(self):
        findings = scan([_allocation()], _lookup({}), WEEK_FIVE)
        self.assertEqual([f.week_number for f in findings], [1, 2, 3, 4])
        self.assertTrue(all(f.reason is FindingReason.MISSING_LOG for f in findings))

    def test_current_week_is_never_flagged(self):
        findings = scan([_allocation()], _lookup({}), kigali(2025, 1, 3))
        self.assertEqual(findings, [])

    def test_weeks_are_capped_at_twelve(self):
        now = kigali(2025, 1, 1) + timedelta(days=14 * 7)
        findings = scan([_allocation()], _lookup({}), now)
        self.assertEqual([f.week_number for f in findings], list(range(1, 13)))

    def test_incomplete_and_complete_logs(self):
        logs = {
            (1, 1): _log(11),
            (1, 2): _log(12, summative_grading='Pending'),
            (1, 3): _log(13, status='Not Started'),
            (1, 4): _log(14),
        }
        findings = scan([_allocation()], _lookup(logs), WEEK_FIVE)
        self.assertEqual([(f.week_number, f.reason) for f in findings], [
            (2, FindingReason.INCOMPLETE_LOG),
            (3, FindingReason.INCOMPLETE_LOG),
        ])
        self.assertEqual(findings[0].log_id, 12)

    def test_other_year_allocation_is_skipped(self):
        with self.assertLogs('coursetrack.domain.deadline_scanner', level='WARNING'):
            result = scan_allocation(_allocation(year=2024), _lookup({}), WEEK_FIVE)
        self.assertIsNone(result)
        self.assertEqual(scan([_allocation(year=2024)], _lookup({}), WEEK_FIVE), [])

    def test_lookup_failure_skips_only_that_allocation(self):
        def lookup(allocation_id, week):
            if allocation_id == 1 and week == 3:
                raise RuntimeError('database went away')
            return None

        with self.assertLogs('coursetrack.domain.deadline_scanner', level='ERROR'):
            findings = scan([_allocation(1), _allocation(2)], lookup, WEEK_FIVE)
        self.assertEqual({f.allocation_id for f in findings}, {2})
        self.assertEqual(len(findings), 4)

    def test_allocations_are_independent(self):
        logs = {(2, week): _log(week) for week in range(1, 5)}
        findings = scan([_allocation(1), _allocation(2)], _lookup(logs), WEEK_FIVE)
        self.assertEqual({f.allocation_id for f in findings}, {1})


if __name__ == '__main__':
    unittest.main()
