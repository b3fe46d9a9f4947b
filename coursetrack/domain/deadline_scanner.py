from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable

from coursetrack.domain.completeness import is_complete
from coursetrack.domain.week_resolver import resolve_current_week


logger = logging.getLogger(__name__)

MAX_WEEKS_PER_TRIMESTER = 12


class FindingReason(str, Enum):
    MISSING_LOG = 'log_missing'
    INCOMPLETE_LOG = 'log_incomplete'


@dataclass(frozen=True)
class AllocationContext:
    """Flattened allocation row carrying what notification rendering needs."""

    allocation_id: int
    trimester: str
    year: int
    facilitator_email: str
    facilitator_name: str
    module_name: str = 'N/A'
    class_name: str = 'N/A'


@dataclass(frozen=True)
class Finding:
    allocation: AllocationContext
    week_number: int
    reason: FindingReason
    log: Any = None

    @property
    def allocation_id(self) -> int:
        return self.allocation.allocation_id

    @property
    def log_id(self) -> int | None:
        return getattr(self.log, 'id', None) if self.log is not None else None


LogLookup = Callable[[int, int], Any]


def scan_allocation(
    allocation: AllocationContext,
    find_log: LogLookup,
    now: datetime,
    *,
    max_weeks: int = MAX_WEEKS_PER_TRIMESTER,
) -> list[Finding] | None:
    """Findings for one allocation, or None when it cannot be scanned."""
    current_week = resolve_current_week(allocation.trimester, allocation.year, now)
    if current_week is None:
        logger.warning(
            'deadline_scan_skipped allocation_id=%s trimester=%s year=%s reason=week_not_applicable',
            allocation.allocation_id,
            allocation.trimester,
            allocation.year,
        )
        return None

    findings: list[Finding] = []
    for week in range(1, min(current_week, max_weeks) + 1):
        # The in-progress week is never past its deadline.
        is_past_deadline = week < current_week
        if not is_past_deadline:
            continue
        log = find_log(allocation.allocation_id, week)
        if log is None:
            findings.append(Finding(allocation=allocation, week_number=week, reason=FindingReason.MISSING_LOG))
        elif not is_complete(log):
            findings.append(
                Finding(allocation=allocation, week_number=week, reason=FindingReason.INCOMPLETE_LOG, log=log)
            )
    return findings


def scan(
    allocations: Iterable[AllocationContext],
    find_log: LogLookup,
    now: datetime,
    *,
    max_weeks: int = MAX_WEEKS_PER_TRIMESTER,
) -> list[Finding]:
    findings: list[Finding] = []
    for allocation in allocations:
        try:
            allocation_findings = scan_allocation(allocation, find_log, now, max_weeks=max_weeks)
        except Exception:
            logger.exception('deadline_scan_allocation_failed allocation_id=%s', allocation.allocation_id)
            continue
        if not allocation_findings:
            continue
        for finding in allocation_findings:
            logger.info(
                'deadline_scan_finding allocation_id=%s week=%s reason=%s',
                finding.allocation_id,
                finding.week_number,
                finding.reason.value,
            )
        findings.extend(allocation_findings)
    return findings
