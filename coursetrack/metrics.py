from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable

from coursetrack.config import settings


logger = logging.getLogger('coursetrack.metrics')


class _EventCounter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[str, int] = {}

    def record(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + amount

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def flush(self) -> None:
        with self._lock:
            if not self._counts:
                return
            logger.info(
                'event_counters %s',
                ' '.join(f'{key}={value}' for key, value in sorted(self._counts.items())),
            )
            self._counts.clear()


_counter = _EventCounter()


def record_event(event: str, amount: int = 1) -> None:
    _counter.record(event, amount)


def event_counts() -> dict[str, int]:
    return _counter.snapshot()


def flush_metrics() -> None:
    _counter.flush()


def timed_service(label: str, *, threshold_ms: int | None = None) -> Callable[[Callable[..., object]], Callable[..., object]]:
    def decorator(func: Callable[..., object]) -> Callable[..., object]:
        threshold_value = threshold_ms if threshold_ms is not None else settings.metrics_slow_ms

        def _log(started: float) -> None:
            duration_ms = (time.perf_counter() - started) * 1000.0
            if duration_ms >= threshold_value:
                logger.info('service_timer label=%s duration_ms=%.2f', label, duration_ms)

        if asyncio.iscoroutinefunction(func):
            async def async_wrapper(*args: object, **kwargs: object):
                started = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _log(started)

            return async_wrapper  # type: ignore[return-value]

        def sync_wrapper(*args: object, **kwargs: object):
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _log(started)

        return sync_wrapper  # type: ignore[return-value]

    return decorator


def run_timed_job(label: str, fn: Callable[[], object]) -> object:
    start = time.perf_counter()
    logger.info('job_start name=%s', label)
    status = 'ok'
    try:
        return fn()
    except Exception:
        status = 'failed'
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.exception('job_failed name=%s duration_ms=%.2f', label, duration_ms)
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info('job_end name=%s status=%s duration_ms=%.2f', label, status, duration_ms)
