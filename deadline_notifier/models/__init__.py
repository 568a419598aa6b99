"""SQLModel tables used by the reminder engine."""

from .assignment import (
    COMPLETED_STATUSES,
    Assignment,
    Course,
    Enrollment,
    Extension,
    Submission,
    SubmissionStatus,
)
from .notification import (
    Channel,
    NotificationCategory,
    NotificationPriority,
    NotificationRecord,
    NotificationStatus,
    NotificationType,
)
from .preference import NotificationPreference
from .reminder import Reminder, ReminderKind

__all__ = [
    "COMPLETED_STATUSES",
    "Assignment",
    "Channel",
    "Course",
    "Enrollment",
    "Extension",
    "NotificationCategory",
    "NotificationPreference",
    "NotificationPriority",
    "NotificationRecord",
    "NotificationStatus",
    "NotificationType",
    "Reminder",
    "ReminderKind",
    "Submission",
    "SubmissionStatus",
]
