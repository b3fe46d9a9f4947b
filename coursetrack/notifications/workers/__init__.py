from coursetrack.notifications.workers.delivery_worker import NotificationWorker

__all__ = ["NotificationWorker"]
