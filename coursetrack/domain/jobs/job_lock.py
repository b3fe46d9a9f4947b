from __future__ import annotations

import logging
import threading
import uuid

from coursetrack.cache import CacheManager, cache, cache_key


logger = logging.getLogger(__name__)
_lock = threading.RLock()
_KEY_PREFIX = 'job_lock'


def _lock_key(job_label: str) -> str:
    return cache_key(_KEY_PREFIX, job_label)


def acquire_job_lock(job_label: str, *, ttl_seconds: int = 900, manager: CacheManager | None = None) -> str | None:
    key = _lock_key(job_label)
    token = uuid.uuid4().hex
    target = manager or cache
    with _lock:
        if not target.add_if_absent(key, token, max(1, int(ttl_seconds))):
            return None
    return token


def release_job_lock(job_label: str, token: str, *, manager: CacheManager | None = None) -> None:
    if not token:
        return
    key = _lock_key(job_label)
    target = manager or cache
    with _lock:
        current = target.backend.get(key)
        if current is None:
            return
        if str(current) == str(token):
            target.invalidate(key)
        else:
            logger.warning('job_lock_release_token_mismatch job=%s', job_label)
