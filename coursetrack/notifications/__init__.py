from coursetrack.notifications.models import AlertType, EnqueueResult, MailResult, NotificationKind, QueuedJob

__all__ = ["AlertType", "EnqueueResult", "MailResult", "NotificationKind", "QueuedJob"]
