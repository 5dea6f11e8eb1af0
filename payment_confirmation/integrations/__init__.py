"""Payment provider integrations."""
from .dana import PaymentCodeNotification, StatusNotification, StatusNotificationBody

__all__ = [
    "PaymentCodeNotification",
    "StatusNotification",
    "StatusNotificationBody",
]
