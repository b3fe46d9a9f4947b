from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from coursetrack.db import SessionLocal
from coursetrack.domain.jobs.job_lock import acquire_job_lock, release_job_lock
from coursetrack.metrics import record_event, run_timed_job


logger = logging.getLogger(__name__)
T = TypeVar('T')


def with_db(
    task: Callable[[Session], T],
    *,
    job_label: str,
    lock_ttl_seconds: int = 900,
    session_factory: sessionmaker = SessionLocal,
) -> T | None:
    lock_token = acquire_job_lock(job_label, ttl_seconds=lock_ttl_seconds)
    if not lock_token:
        logger.info('job_lock_skipped_concurrent job=%s', job_label)
        record_event(f'job_lock_skipped:{job_label}')
        return None
    logger.info('job_lock_acquired job=%s', job_label)
    db: Session = session_factory()
    try:
        result = task(db)
        record_event(f'job_success_count:{job_label}')
        return result
    except Exception:
        db.rollback()
        record_event(f'job_failure_count:{job_label}')
        raise
    finally:
        db.close()
        release_job_lock(job_label, lock_token)


def run_job(label: str, task: Callable[[Session], T], **kwargs) -> T | None:
    return run_timed_job(label, lambda: with_db(task, job_label=label, **kwargs))  # type: ignore[return-value]
