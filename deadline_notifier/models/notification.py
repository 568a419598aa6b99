"""Notification record model and notification enumerations for SQLModel."""
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime
from enum import Enum
from typing import Optional

from deadline_notifier.utils.clock import utcnow


class Channel(str, Enum):
    """Delivery channels."""
    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"
    IN_APP = "IN_APP"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationCategory(str, Enum):
    """Categories a recipient can opt out of."""
    ASSIGNMENT_DEADLINES = "ASSIGNMENT_DEADLINES"
    ASSIGNMENT_UPDATES = "ASSIGNMENT_UPDATES"
    SUBMISSION_UPDATES = "SUBMISSION_UPDATES"
    GRADES = "GRADES"
    EXTENSIONS = "EXTENSIONS"


class NotificationType(str, Enum):
    """Stable identifiers consumed by template and channel lookups."""
    ASSIGNMENT_PUBLISHED = "ASSIGNMENT_PUBLISHED"
    ASSIGNMENT_DUE_REMINDER_48H = "ASSIGNMENT_DUE_REMINDER_48H"
    ASSIGNMENT_DUE_REMINDER_24H = "ASSIGNMENT_DUE_REMINDER_24H"
    ASSIGNMENT_OVERDUE = "ASSIGNMENT_OVERDUE"
    SUBMISSION_RECEIVED = "SUBMISSION_RECEIVED"
    SUBMISSION_GRADED = "SUBMISSION_GRADED"
    EXTENSION_GRANTED = "EXTENSION_GRANTED"
    EXTENSION_REQUESTED = "EXTENSION_REQUESTED"


class NotificationRecord(SQLModel, table=True):
    """Audit row for one attempted delivery to one recipient on one channel."""

    __tablename__ = "notification_record"

    id: Optional[int] = Field(default=None, primary_key=True)
    recipient_id: str = Field(index=True, max_length=64)
    channel: Channel
    category: NotificationCategory
    notification_type: NotificationType
    priority: NotificationPriority = Field(default=NotificationPriority.MEDIUM)
    assignment_id: Optional[str] = Field(default=None, index=True, max_length=64)
    reminder_id: Optional[int] = Field(default=None, index=True)
    title: str = Field(default="", max_length=255)
    message: str = Field(default="")
    action_url: Optional[str] = Field(default=None, max_length=500)
    status: NotificationStatus = Field(default=NotificationStatus.PENDING, index=True)
    error: Optional[str] = Field(default=None, max_length=1000)
    attempted_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    sent_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    read_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
