from coursetrack.notifications.core.dispatcher import NotificationDispatcher
from coursetrack.notifications.core.job_queue import NotificationQueue
from coursetrack.notifications.core.retry_engine import RetryEngine
from coursetrack.notifications.core.template_engine import TemplateEngine

__all__ = [
    "NotificationDispatcher",
    "NotificationQueue",
    "RetryEngine",
    "TemplateEngine",
]
