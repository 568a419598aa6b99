"""Notification record schemas."""
from pydantic import BaseModel
from datetime import datetime
from typing import Dict, List, Optional

from deadline_notifier.models.notification import (
    Channel,
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)


class NotificationResponse(BaseModel):
    """Schema for notification record API responses."""
    id: int
    recipient_id: str
    channel: Channel
    category: NotificationCategory
    notification_type: NotificationType
    priority: NotificationPriority
    assignment_id: Optional[str] = None
    reminder_id: Optional[int] = None
    title: str
    message: str
    action_url: Optional[str] = None
    status: NotificationStatus
    error: Optional[str] = None
    attempted_at: datetime
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AssignmentNotificationsResponse(BaseModel):
    """Delivery records for an assignment with per-status counts."""
    assignment_id: str
    counts: Dict[str, int]
    notifications: List[NotificationResponse]


class UnreadCountResponse(BaseModel):
    recipient_id: str
    unread: int


class MarkReadResponse(BaseModel):
    updated: int
