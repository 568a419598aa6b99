"""Notification preference model for SQLModel."""
from sqlmodel import SQLModel, Field
from typing import List, Optional

from deadline_notifier.models.notification import Channel, NotificationCategory


class NotificationPreference(SQLModel, table=True):
    """Per-recipient channel switches, category opt-outs and contact details.

    A recipient without a row gets the defaults below.
    """

    __tablename__ = "notification_preference"

    recipient_id: str = Field(primary_key=True, max_length=64)

    # Channels
    email_enabled: bool = Field(default=True)
    sms_enabled: bool = Field(default=False)
    push_enabled: bool = Field(default=False)
    in_app_enabled: bool = Field(default=True)

    # Categories
    assignment_deadlines: bool = Field(default=True)
    assignment_updates: bool = Field(default=True)
    submission_updates: bool = Field(default=True)
    grade_notifications: bool = Field(default=True)
    extension_updates: bool = Field(default=True)

    # Contact details
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=30)
    device_token: Optional[str] = Field(default=None, max_length=500)

    def enabled_channels(self) -> List[Channel]:
        flags = {
            Channel.EMAIL: self.email_enabled,
            Channel.SMS: self.sms_enabled,
            Channel.PUSH: self.push_enabled,
            Channel.IN_APP: self.in_app_enabled,
        }
        return [channel for channel, enabled in flags.items() if enabled]

    def allows(self, category: NotificationCategory) -> bool:
        """True unless the recipient opted out of the category."""
        opted_in = {
            NotificationCategory.ASSIGNMENT_DEADLINES: self.assignment_deadlines,
            NotificationCategory.ASSIGNMENT_UPDATES: self.assignment_updates,
            NotificationCategory.SUBMISSION_UPDATES: self.submission_updates,
            NotificationCategory.GRADES: self.grade_notifications,
            NotificationCategory.EXTENSIONS: self.extension_updates,
        }
        return opted_in[category]

    def address_for(self, channel: Channel) -> Optional[str]:
        if channel == Channel.EMAIL:
            return self.email
        if channel == Channel.SMS:
            return self.phone
        if channel == Channel.PUSH:
            return self.device_token
        return self.recipient_id
