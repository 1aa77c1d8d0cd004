"""
Notification Schemas

Pydantic schemas for the notifications API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


# ============================================================================
# Response Schemas
# ============================================================================

class NotificationResponse(BaseModel):
    """Response schema for one notification."""
    id: str
    tenant_id: str
    recipient_email: str
    user_id: Optional[str] = None
    type: str
    category: str
    status: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    project_id: Optional[str] = None
    title: str
    message: str
    link: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    read: bool
    created_date: datetime
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    reminder_sent: bool
    escalated_to_admin: bool

    @classmethod
    def from_model(cls, notification) -> "NotificationResponse":
        # `metadata` on a mapped class is the SQLAlchemy MetaData, not the column
        fields = {
            name: getattr(notification, name)
            for name in cls.model_fields
            if name != "metadata"
        }
        return cls(**fields, metadata=notification.payload_data)


class NotificationsListResponse(BaseModel):
    """Response schema for the notification inbox."""
    notifications: List[NotificationResponse]
    total_count: int
    unread_count: int


# ============================================================================
# Request Schemas
# ============================================================================

class AcknowledgeRequest(BaseModel):
    """Request schema for acknowledging a notification."""
    user_id: str
