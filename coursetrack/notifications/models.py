from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from coursetrack.models import NotificationJobStatus


class NotificationKind(str, Enum):
    reminder = "reminder"
    alert = "alert"


class AlertType(str, Enum):
    log_submitted = "log_submitted"
    log_updated = "log_updated"
    log_deleted = "log_deleted"
    deadline_missed = "deadline_missed"


class QueuedJob(BaseModel):
    """Detached snapshot of a notification_jobs row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: NotificationKind
    dedupe_key: str
    recipients: list[str] = Field(default_factory=list)
    payload: dict[str, Any] = Field(default_factory=dict)
    status: NotificationJobStatus = NotificationJobStatus.PENDING
    attempt_count: int = 0
    max_attempts: int = 3
    next_attempt_at: datetime
    claimed_by: str = ""
    last_error: str = ""
    created_at: datetime | None = None


class EnqueueResult(BaseModel):
    job: QueuedJob
    created: bool


class RenderedMessage(BaseModel):
    sender_name: str
    subject: str
    html: str


class MailResult(BaseModel):
    ok: bool
    error: str = ""
