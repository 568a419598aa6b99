"""
Notification catalogue.

Every NotificationType maps to exactly one template giving its priority,
opt-out category, title/body text, the context fields it needs and the
action link shown with it. Rendering turns a template plus context into a
channel-appropriate message.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from deadline_notifier.models.notification import (
    Channel,
    NotificationCategory,
    NotificationPriority,
    NotificationType,
)
from deadline_notifier.models.reminder import ReminderKind
from deadline_notifier.services.errors import TemplateContextError

SMS_MAX_LENGTH = 160
PUSH_MAX_LENGTH = 178


@dataclass(frozen=True)
class NotificationTemplate:
    """Static description of one notification type."""

    priority: NotificationPriority
    category: NotificationCategory
    title: str
    body: str
    required_fields: Tuple[str, ...]
    action_path: str
    action_text: str
    # Adds display-only fields computed from the context
    derive: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None


@dataclass
class MessageContext:
    """What to send: the notification type and the fields its template needs."""

    notification_type: NotificationType
    fields: Dict[str, Any] = field(default_factory=dict)
    assignment_id: Optional[str] = None
    reminder_id: Optional[int] = None

    def for_recipient(self, overrides: Optional[Mapping[str, Any]]) -> "MessageContext":
        if not overrides:
            return self
        merged = dict(self.fields)
        merged.update(overrides)
        return MessageContext(
            notification_type=self.notification_type,
            fields=merged,
            assignment_id=self.assignment_id,
            reminder_id=self.reminder_id,
        )


@dataclass
class RenderedMessage:
    """Message ready to hand to a channel sender."""

    notification_type: NotificationType
    channel: Channel
    title: str
    body: str
    priority: NotificationPriority
    category: NotificationCategory
    action_url: str
    action_text: str
    data: Dict[str, Any] = field(default_factory=dict)


def _late_note(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {"late_note": " (late submission)" if fields.get("is_late") else ""}


def _feedback_note(fields: Dict[str, Any]) -> Dict[str, Any]:
    feedback = fields.get("feedback")
    return {"feedback_note": f" Feedback: {feedback}" if feedback else ""}


_ASSIGNMENT_FIELDS = ("assignment_id", "assignment_title", "course_name")

TEMPLATES: Dict[NotificationType, NotificationTemplate] = {
    NotificationType.ASSIGNMENT_PUBLISHED: NotificationTemplate(
        priority=NotificationPriority.MEDIUM,
        category=NotificationCategory.ASSIGNMENT_UPDATES,
        title="New Assignment Available",
        body='A new assignment "{assignment_title}" has been published in {course_name}. '
             'Due: {due_date:%Y-%m-%d %H:%M} UTC',
        required_fields=_ASSIGNMENT_FIELDS + ("due_date",),
        action_path="/assignments/{assignment_id}",
        action_text="View Assignment",
    ),
    NotificationType.ASSIGNMENT_DUE_REMINDER_48H: NotificationTemplate(
        priority=NotificationPriority.HIGH,
        category=NotificationCategory.ASSIGNMENT_DEADLINES,
        title="Assignment Due in 48 Hours",
        body='Reminder: "{assignment_title}" in {course_name} is due in {hours_remaining} hours.',
        required_fields=_ASSIGNMENT_FIELDS + ("due_date", "hours_remaining"),
        action_path="/assignments/{assignment_id}",
        action_text="View Assignment",
    ),
    NotificationType.ASSIGNMENT_DUE_REMINDER_24H: NotificationTemplate(
        priority=NotificationPriority.URGENT,
        category=NotificationCategory.ASSIGNMENT_DEADLINES,
        title="Assignment Due Tomorrow!",
        body='Urgent: "{assignment_title}" in {course_name} is due in {hours_remaining} hours.',
        required_fields=_ASSIGNMENT_FIELDS + ("due_date", "hours_remaining"),
        action_path="/assignments/{assignment_id}",
        action_text="View Assignment",
    ),
    NotificationType.ASSIGNMENT_OVERDUE: NotificationTemplate(
        priority=NotificationPriority.URGENT,
        category=NotificationCategory.ASSIGNMENT_DEADLINES,
        title="Assignment Overdue",
        body='"{assignment_title}" in {course_name} is now overdue. Please submit as soon as possible.',
        required_fields=_ASSIGNMENT_FIELDS + ("due_date",),
        action_path="/assignments/{assignment_id}",
        action_text="View Assignment",
    ),
    NotificationType.SUBMISSION_RECEIVED: NotificationTemplate(
        priority=NotificationPriority.MEDIUM,
        category=NotificationCategory.SUBMISSION_UPDATES,
        title="New Submission Received",
        body='{student_name} has submitted "{assignment_title}" in {course_name}{late_note}.',
        required_fields=_ASSIGNMENT_FIELDS + ("student_name", "is_late"),
        action_path="/assignments/{assignment_id}/submissions",
        action_text="View Submissions",
        derive=_late_note,
    ),
    NotificationType.SUBMISSION_GRADED: NotificationTemplate(
        priority=NotificationPriority.HIGH,
        category=NotificationCategory.GRADES,
        title="Assignment Graded",
        body='Your submission for "{assignment_title}" has been graded. '
             'Score: {grade}/{total_points}.{feedback_note}',
        required_fields=_ASSIGNMENT_FIELDS + ("grade", "total_points"),
        action_path="/assignments/{assignment_id}/submission",
        action_text="View Grade",
        derive=_feedback_note,
    ),
    NotificationType.EXTENSION_GRANTED: NotificationTemplate(
        priority=NotificationPriority.HIGH,
        category=NotificationCategory.EXTENSIONS,
        title="Assignment Extension Granted",
        body='Your deadline for "{assignment_title}" has been extended to {new_due_date:%Y-%m-%d %H:%M} UTC.',
        required_fields=_ASSIGNMENT_FIELDS + ("new_due_date",),
        action_path="/assignments/{assignment_id}",
        action_text="View Details",
    ),
    NotificationType.EXTENSION_REQUESTED: NotificationTemplate(
        priority=NotificationPriority.MEDIUM,
        category=NotificationCategory.EXTENSIONS,
        title="Extension Request Received",
        body='A student has requested an extension for "{assignment_title}" in {course_name}.',
        required_fields=_ASSIGNMENT_FIELDS,
        action_path="/assignments/{assignment_id}",
        action_text="View Details",
    ),
}

_missing_templates = set(NotificationType) - set(TEMPLATES)
if _missing_templates:
    raise RuntimeError(f"No template registered for {sorted(t.value for t in _missing_templates)}")

REMINDER_NOTIFICATION_TYPES: Dict[ReminderKind, NotificationType] = {
    ReminderKind.DUE_IN_48H: NotificationType.ASSIGNMENT_DUE_REMINDER_48H,
    ReminderKind.DUE_IN_24H: NotificationType.ASSIGNMENT_DUE_REMINDER_24H,
    ReminderKind.OVERDUE: NotificationType.ASSIGNMENT_OVERDUE,
}


def get_template(notification_type: NotificationType) -> NotificationTemplate:
    return TEMPLATES[NotificationType(notification_type)]


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3].rstrip() + "..."


def render(context: MessageContext, channel: Channel, base_url: str = "") -> RenderedMessage:
    """
    Render a message for one channel.

    Raises:
        TemplateContextError: if a required context field is missing
    """
    template = get_template(context.notification_type)
    fields = dict(context.fields)
    if context.assignment_id is not None:
        fields.setdefault("assignment_id", context.assignment_id)

    missing = [name for name in template.required_fields if fields.get(name) is None]
    if missing:
        raise TemplateContextError(
            f"{context.notification_type.value} requires {', '.join(missing)}"
        )
    if template.derive is not None:
        fields.update(template.derive(fields))

    try:
        body = template.body.format(**fields)
        action_url = base_url + template.action_path.format(**fields)
    except (KeyError, ValueError) as exc:
        raise TemplateContextError(f"Cannot render {context.notification_type.value}: {exc}") from exc

    title = template.title
    if channel == Channel.SMS:
        body = _truncate(f"{title}: {body}", SMS_MAX_LENGTH)
    elif channel == Channel.PUSH:
        body = _truncate(body, PUSH_MAX_LENGTH)
    elif channel == Channel.EMAIL:
        body = f"{body}\n\n{template.action_text}: {action_url}"

    return RenderedMessage(
        notification_type=NotificationType(context.notification_type),
        channel=channel,
        title=title,
        body=body,
        priority=template.priority,
        category=template.category,
        action_url=action_url,
        action_text=template.action_text,
        data=fields if channel == Channel.IN_APP else {},
    )
