"""
Notifications Module

In-app notification records with email mirroring.
"""

from .service import NotificationService, DeliveryResult, get_notification_service
from .email_provider import (
    EmailProvider,
    EmailMessage,
    SendResult,
    get_email_provider,
)

__all__ = [
    "NotificationService",
    "DeliveryResult",
    "get_notification_service",
    "EmailProvider",
    "EmailMessage",
    "SendResult",
    "get_email_provider",
]
