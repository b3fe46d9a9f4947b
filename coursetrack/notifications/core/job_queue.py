from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from coursetrack.core.time_provider import TimeProvider, default_time_provider
from coursetrack.models import NotificationJob, NotificationJobStatus
from coursetrack.notifications.core.retry_engine import RetryEngine
from coursetrack.notifications.models import EnqueueResult, NotificationKind, QueuedJob


logger = logging.getLogger(__name__)

_CLAIM_RETRIES = 5
_MAX_ERROR_CHARS = 2000


def _snapshot(row: NotificationJob) -> QueuedJob:
    return QueuedJob.model_validate(row)


class NotificationQueue:
    """Durable notification queue stored in the ``notification_jobs`` table.

    Jobs move pending -> processing -> (deleted | pending after backoff |
    dead_letter). A dedupe key that is still present in the table blocks a
    second enqueue; completed jobs are deleted, so the key frees up again.
    Dead-letter rows stay until someone requeues them.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        retry_engine: RetryEngine | None = None,
        *,
        time_provider: TimeProvider = default_time_provider,
    ) -> None:
        self.session_factory = session_factory
        self.retry_engine = retry_engine or RetryEngine()
        self.time_provider = time_provider

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db: Session = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def enqueue(
        self,
        kind: NotificationKind,
        recipients: list[str],
        payload: dict[str, Any],
        dedupe_key: str,
    ) -> EnqueueResult:
        now = self.time_provider.utc_now()
        with self._session() as db:
            existing = db.query(NotificationJob).filter(NotificationJob.dedupe_key == dedupe_key).first()
            if existing is not None:
                logger.info('notification_enqueue_deduplicated key=%s job_id=%s', dedupe_key, existing.id)
                return EnqueueResult(job=_snapshot(existing), created=False)

            row = NotificationJob(
                kind=NotificationKind(kind).value,
                dedupe_key=dedupe_key,
                recipients=list(recipients),
                payload=dict(payload),
                status=NotificationJobStatus.PENDING.value,
                attempt_count=0,
                max_attempts=self.retry_engine.max_attempts,
                backoff_base_ms=int(self.retry_engine.base_seconds * 1000),
                next_attempt_at=now,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                # Lost a race against another producer with the same key.
                db.rollback()
                existing = db.query(NotificationJob).filter(NotificationJob.dedupe_key == dedupe_key).first()
                if existing is None:
                    raise
                return EnqueueResult(job=_snapshot(existing), created=False)
            db.refresh(row)
            logger.info('notification_enqueued kind=%s job_id=%s key=%s', row.kind, row.id, dedupe_key)
            return EnqueueResult(job=_snapshot(row), created=True)

    def claim_next(self, worker_id: str = '') -> QueuedJob | None:
        now = self.time_provider.utc_now()
        with self._session() as db:
            for _ in range(_CLAIM_RETRIES):
                candidate = (
                    db.query(NotificationJob.id)
                    .filter(
                        NotificationJob.status == NotificationJobStatus.PENDING.value,
                        NotificationJob.next_attempt_at <= now,
                    )
                    .order_by(NotificationJob.next_attempt_at.asc(), NotificationJob.id.asc())
                    .first()
                )
                if candidate is None:
                    return None
                claimed = (
                    db.query(NotificationJob)
                    .filter(
                        NotificationJob.id == candidate.id,
                        NotificationJob.status == NotificationJobStatus.PENDING.value,
                    )
                    .update(
                        {
                            NotificationJob.status: NotificationJobStatus.PROCESSING.value,
                            NotificationJob.claimed_at: now,
                            NotificationJob.claimed_by: worker_id,
                            NotificationJob.updated_at: now,
                        },
                        synchronize_session=False,
                    )
                )
                db.commit()
                if claimed == 1:
                    row = db.get(NotificationJob, candidate.id)
                    if row is not None:
                        return _snapshot(row)
        return None

    def complete(self, job_id: int, *, worker_id: str | None = None) -> bool:
        """Delete a delivered job. With ``worker_id`` only that worker's claim is honoured."""
        with self._session() as db:
            query = db.query(NotificationJob).filter(
                NotificationJob.id == job_id,
                NotificationJob.status == NotificationJobStatus.PROCESSING.value,
            )
            if worker_id is not None:
                query = query.filter(NotificationJob.claimed_by == worker_id)
            deleted = query.delete(synchronize_session=False)
            db.commit()
        if not deleted:
            logger.warning('notification_complete_missing job_id=%s worker_id=%s', job_id, worker_id)
        return bool(deleted)

    def fail(self, job_id: int, error: str, *, worker_id: str | None = None) -> QueuedJob | None:
        now = self.time_provider.utc_now()
        with self._session() as db:
            row = db.get(NotificationJob, job_id)
            if row is None or row.status != NotificationJobStatus.PROCESSING.value:
                logger.warning('notification_fail_not_processing job_id=%s', job_id)
                return None
            if worker_id is not None and row.claimed_by != worker_id:
                logger.warning('notification_fail_claim_lost job_id=%s worker_id=%s owner=%s', job_id, worker_id, row.claimed_by)
                return None
            row.attempt_count = int(row.attempt_count or 0) + 1
            row.last_error = (error or '')[:_MAX_ERROR_CHARS]
            row.claimed_at = None
            row.claimed_by = ''
            row.updated_at = now
            policy = RetryEngine(base_seconds=(row.backoff_base_ms or 0) / 1000.0, max_attempts=row.max_attempts)
            if policy.should_retry(row.attempt_count):
                row.status = NotificationJobStatus.PENDING.value
                row.next_attempt_at = policy.next_attempt(row.attempt_count, now)
                logger.warning(
                    'notification_retry_scheduled job_id=%s attempt=%s/%s next_attempt_at=%s',
                    row.id,
                    row.attempt_count,
                    row.max_attempts,
                    row.next_attempt_at.isoformat(),
                )
            else:
                row.status = NotificationJobStatus.DEAD_LETTER.value
                logger.error(
                    'notification_dead_letter job_id=%s kind=%s attempts=%s error=%s',
                    row.id,
                    row.kind,
                    row.attempt_count,
                    row.last_error,
                )
            db.commit()
            db.refresh(row)
            return _snapshot(row)

    def recover_stale(self, timeout_seconds: int) -> int:
        """Return jobs stuck in processing (crashed worker) to the pending state."""
        now = self.time_provider.utc_now()
        cutoff = now - timedelta(seconds=max(1, int(timeout_seconds)))
        with self._session() as db:
            recovered = (
                db.query(NotificationJob)
                .filter(
                    NotificationJob.status == NotificationJobStatus.PROCESSING.value,
                    NotificationJob.claimed_at < cutoff,
                )
                .update(
                    {
                        NotificationJob.status: NotificationJobStatus.PENDING.value,
                        NotificationJob.claimed_at: None,
                        NotificationJob.claimed_by: '',
                        NotificationJob.next_attempt_at: now,
                        NotificationJob.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
        if recovered:
            logger.warning('notification_stale_jobs_recovered count=%s', recovered)
        return int(recovered or 0)

    def get(self, job_id: int) -> QueuedJob | None:
        with self._session() as db:
            row = db.get(NotificationJob, job_id)
            return _snapshot(row) if row is not None else None

    def list_jobs(self, status: NotificationJobStatus | None = None, *, limit: int = 100) -> list[QueuedJob]:
        with self._session() as db:
            query = db.query(NotificationJob)
            if status is not None:
                query = query.filter(NotificationJob.status == NotificationJobStatus(status).value)
            rows = query.order_by(NotificationJob.created_at.asc(), NotificationJob.id.asc()).limit(limit).all()
            return [_snapshot(row) for row in rows]

    def requeue(self, job_id: int) -> QueuedJob | None:
        """Manual replay of a dead-letter job with a fresh attempt budget."""
        now = self.time_provider.utc_now()
        with self._session() as db:
            row = db.get(NotificationJob, job_id)
            if row is None or row.status != NotificationJobStatus.DEAD_LETTER.value:
                return None
            row.status = NotificationJobStatus.PENDING.value
            row.attempt_count = 0
            row.next_attempt_at = now
            row.updated_at = now
            db.commit()
            db.refresh(row)
            logger.info('notification_requeued job_id=%s', row.id)
            return _snapshot(row)

    def stats(self) -> dict[str, int]:
        counts = {status.value: 0 for status in NotificationJobStatus}
        with self._session() as db:
            rows = db.query(NotificationJob.status, func.count(NotificationJob.id)).group_by(NotificationJob.status).all()
        for status, count in rows:
            counts[str(status)] = int(count)
        return counts
