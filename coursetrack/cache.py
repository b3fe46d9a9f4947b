from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from coursetrack.config import settings
from coursetrack.core.time_provider import default_time_provider
from coursetrack.metrics import record_event


logger = logging.getLogger(__name__)


def cache_key(prefix: str, identifier: str | int | None = None) -> str:
    if identifier is None or identifier == '':
        return prefix
    return f"{prefix}:{identifier}"


class CacheBackend:
    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: int) -> None:
        raise NotImplementedError

    def add(self, key: str, value: Any, ttl: int) -> bool:
        """Set only if absent; True when the key was written."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryCacheBackend(CacheBackend):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: dict[str, tuple[datetime, Any]] = {}

    def _live(self, key: str) -> Any | None:
        item = self._store.get(key)
        if not item:
            return None
        expires_at, value = item
        if default_time_provider.utc_now() >= expires_at:
            self._store.pop(key, None)
            return None
        return value

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: Any, ttl: int) -> None:
        expires_at = default_time_provider.utc_now() + timedelta(seconds=max(1, int(ttl)))
        with self._lock:
            self._store[key] = (expires_at, value)

    def add(self, key: str, value: Any, ttl: int) -> bool:
        expires_at = default_time_provider.utc_now() + timedelta(seconds=max(1, int(ttl)))
        with self._lock:
            if self._live(key) is not None:
                return False
            self._store[key] = (expires_at, value)
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)


class RedisCacheBackend(CacheBackend):
    def __init__(self, redis_url: str) -> None:
        import redis  # type: ignore

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    def get(self, key: str) -> Any | None:
        raw = self._client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw

    def set(self, key: str, value: Any, ttl: int) -> None:
        self._client.setex(key, max(1, int(ttl)), json.dumps(value, default=str))

    def add(self, key: str, value: Any, ttl: int) -> bool:
        # Atomic SET NX EX.
        return bool(self._client.set(key, json.dumps(value, default=str), nx=True, ex=max(1, int(ttl))))

    def delete(self, key: str) -> None:
        self._client.delete(key)


@dataclass
class CacheManager:
    backend: CacheBackend

    def get_cached(self, key: str) -> Any | None:
        value = self.backend.get(key)
        record_event('cache_hit' if value is not None else 'cache_miss')
        return value

    def set_cached(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl_value = ttl if ttl is not None else settings.default_cache_ttl
        self.backend.set(key, value, ttl_value)
        logger.debug('cache set: %s ttl=%s', key, ttl_value)

    def add_if_absent(self, key: str, value: Any, ttl: int | None = None) -> bool:
        ttl_value = ttl if ttl is not None else settings.default_cache_ttl
        return self.backend.add(key, value, ttl_value)

    def invalidate(self, key: str) -> None:
        self.backend.delete(key)
        record_event('cache_invalidate')


def _build_cache_backend() -> CacheBackend:
    if settings.cache_backend == 'redis' and settings.cache_redis_url:
        try:
            return RedisCacheBackend(settings.cache_redis_url)
        except Exception:
            logger.exception('redis_cache_init_failed_falling_back_to_memory')
    return MemoryCacheBackend()


cache = CacheManager(backend=_build_cache_backend())
