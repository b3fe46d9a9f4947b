from __future__ import annotations

import asyncio
import logging
import os
import socket

from coursetrack.metrics import record_event
from coursetrack.notifications.core.job_queue import NotificationQueue
from coursetrack.notifications.core.template_engine import TemplateEngine
from coursetrack.notifications.models import MailResult, QueuedJob
from coursetrack.notifications.transports.base import MailTransport


logger = logging.getLogger(__name__)


def default_worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class NotificationWorker:
    def __init__(
        self,
        queue: NotificationQueue,
        template_engine: TemplateEngine,
        transport: MailTransport,
        *,
        sender_email: str,
        poll_interval_seconds: float = 0.5,
        stale_timeout_seconds: int = 300,
        batch_size: int = 20,
        worker_id: str | None = None,
    ) -> None:
        self.queue = queue
        self.template_engine = template_engine
        self.transport = transport
        self.sender_email = sender_email
        self.poll_interval_seconds = poll_interval_seconds
        self.stale_timeout_seconds = stale_timeout_seconds
        self.batch_size = batch_size
        self.worker_id = worker_id or default_worker_id()
        self._running = False
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self.run())
        logger.info("notification_worker_started worker_id=%s", self.worker_id)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("notification_worker_stopped worker_id=%s", self.worker_id)

    async def serve_forever(self) -> None:
        self._running = True
        await self.run()

    async def run(self) -> None:
        while self._running:
            try:
                await asyncio.to_thread(self.queue.recover_stale, self.stale_timeout_seconds)
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("notification_worker_tick_failed worker_id=%s", self.worker_id)
            await asyncio.sleep(self.poll_interval_seconds)

    async def _tick(self) -> int:
        processed = 0
        while processed < self.batch_size:
            job = await asyncio.to_thread(self.queue.claim_next, self.worker_id)
            if job is None:
                break
            await self.process_job(job)
            processed += 1
        return processed

    async def run_until_idle(self) -> int:
        """Drain every job that is due right now; used by tests and one-shot runs."""
        total = 0
        while True:
            processed = await self._tick()
            total += processed
            if processed < self.batch_size:
                return total

    async def process_job(self, job: QueuedJob) -> bool:
        result = await self._deliver(job)
        if result.ok:
            await asyncio.to_thread(self.queue.complete, job.id, worker_id=self.worker_id)
            record_event(f"notification_sent_{job.kind.value}")
            logger.info(
                "notification_delivered job_id=%s kind=%s attempt=%s",
                job.id,
                job.kind.value,
                job.attempt_count + 1,
            )
            return True

        updated = await asyncio.to_thread(self.queue.fail, job.id, result.error, worker_id=self.worker_id)
        record_event(f"notification_failed_{job.kind.value}")
        logger.warning(
            "notification_delivery_failed job_id=%s kind=%s attempt=%s status=%s error=%s",
            job.id,
            job.kind.value,
            job.attempt_count + 1,
            updated.status.value if updated else "unknown",
            result.error,
        )
        return False

    async def _deliver(self, job: QueuedJob) -> MailResult:
        try:
            rendered = self.template_engine.render(job)
        except Exception as exc:
            logger.exception("notification_render_failed job_id=%s kind=%s", job.id, job.kind.value)
            return MailResult(ok=False, error=f"render failed: {exc}")

        from_address = f'"{rendered.sender_name}" <{self.sender_email}>'
        try:
            return await self.transport.send(from_address, list(job.recipients), rendered.subject, rendered.html)
        except Exception as exc:
            logger.exception("notification_transport_error job_id=%s transport=%s", job.id, self.transport.name)
            return MailResult(ok=False, error=str(exc) or exc.__class__.__name__)
