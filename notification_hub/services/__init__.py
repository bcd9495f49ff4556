"""Notification lifecycle services"""

from .notification_service import NotificationService
from .processing import NotificationProcessor

__all__ = [
    'NotificationService',
    'NotificationProcessor',
]
