from __future__ import annotations

from typing import Any, Mapping

from coursetrack.models import ACTIVITY_STATUS_FIELDS, TaskStatus


def coerce_status(value: Any) -> TaskStatus | None:
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(value)
    except ValueError:
        return None


def _field(log: Any, name: str) -> Any:
    if isinstance(log, Mapping):
        return log.get(name)
    return getattr(log, name, None)


def status_summary(log: Any) -> dict[str, TaskStatus | None]:
    return {name: coerce_status(_field(log, name)) for name in ACTIVITY_STATUS_FIELDS}


def is_complete(log: Any) -> bool:
    if log is None:
        return False
    return all(status is TaskStatus.DONE for status in status_summary(log).values())


def pending_fields(log: Any) -> list[str]:
    if log is None:
        return list(ACTIVITY_STATUS_FIELDS)
    return [name for name, status in status_summary(log).items() if status is not TaskStatus.DONE]
