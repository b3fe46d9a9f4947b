from coursetrack.notifications.transports.base import MailTransport
from coursetrack.notifications.transports.smtp_transport import SmtpTransport

__all__ = ["MailTransport", "SmtpTransport"]
