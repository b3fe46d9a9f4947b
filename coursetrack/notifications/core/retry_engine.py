from __future__ import annotations

from datetime import datetime, timedelta


class RetryEngine:
    def __init__(self, base_seconds: float = 1.0, max_attempts: int = 3) -> None:
        self.base_seconds = base_seconds
        self.max_attempts = max_attempts

    def delay(self, attempt_count: int) -> timedelta:
        # Attempt 1 failed -> base, attempt 2 failed -> 2 * base, ...
        exponent = max(0, int(attempt_count) - 1)
        return timedelta(seconds=self.base_seconds * (2 ** exponent))

    def next_attempt(self, attempt_count: int, now: datetime) -> datetime:
        return now + self.delay(attempt_count)

    def should_retry(self, attempt_count: int, max_attempts: int | None = None) -> bool:
        limit = self.max_attempts if max_attempts is None else max_attempts
        return attempt_count < limit
