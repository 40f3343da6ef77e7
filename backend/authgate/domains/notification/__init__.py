"""Outbound notification (email) delivery"""

from .client import NotificationClient, NotificationError, get_notification_client

__all__ = [
    'NotificationClient', 'NotificationError', 'get_notification_client',
]
