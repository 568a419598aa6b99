"""
Assignment Notification Service.

Reacts to assignment lifecycle events: keeps reminders in step with the
assignment and sends the one-off notifications (published, submission
received, graded, extension granted/requested) through the fan-out.
"""

import logging
from typing import Optional

from deadline_notifier.models.assignment import Assignment
from deadline_notifier.models.notification import NotificationType
from deadline_notifier.services.collaborators import AssignmentSource, RosterProvider
from deadline_notifier.services.deadline_model import find_active_extension
from deadline_notifier.services.notification_fanout import DispatchReport, NotificationFanout
from deadline_notifier.services.notification_types import MessageContext
from deadline_notifier.services.reminder_scheduler import ReminderScheduler
from deadline_notifier.utils.clock import normalize_instant

logger = logging.getLogger(__name__)


class AssignmentNotificationService:
    """Entry points called by the course-management side on assignment events."""

    def __init__(
        self,
        assignments: AssignmentSource,
        roster: RosterProvider,
        scheduler: ReminderScheduler,
        fanout: NotificationFanout,
    ):
        self.assignments = assignments
        self.roster = roster
        self.scheduler = scheduler
        self.fanout = fanout

    def _assignment_context(
        self,
        notification_type: NotificationType,
        assignment: Assignment,
        **fields,
    ) -> MessageContext:
        base = {
            "assignment_id": assignment.id,
            "assignment_title": assignment.title,
            "course_name": self.assignments.course_title(assignment.course_id) or assignment.course_id,
        }
        base.update(fields)
        return MessageContext(notification_type=notification_type, fields=base, assignment_id=assignment.id)

    def _load(self, assignment_id: str) -> Optional[Assignment]:
        assignment = self.assignments.get(assignment_id)
        if assignment is None:
            logger.warning(f"Assignment {assignment_id} not found")
        return assignment

    async def assignment_published(self, assignment_id: str) -> DispatchReport:
        """Schedule reminders and tell the roster about a newly published assignment."""
        assignment = self._load(assignment_id)
        if assignment is None or not assignment.is_published:
            return DispatchReport()

        self.scheduler.schedule_reminders(assignment)
        context = self._assignment_context(
            NotificationType.ASSIGNMENT_PUBLISHED,
            assignment,
            due_date=normalize_instant(assignment.due_date),
        )
        recipients = self.roster.enrolled_recipients(assignment.course_id)
        return await self.fanout.dispatch(recipients, context)

    def due_date_changed(self, assignment_id: str):
        """Recompute reminders after the due date moved."""
        return self.scheduler.reschedule_reminders(assignment_id)

    def assignment_unpublished(self, assignment_id: str) -> int:
        return self.scheduler.cancel_reminders(assignment_id)

    def assignment_deleted(self, assignment_id: str) -> int:
        return self.scheduler.cancel_reminders(assignment_id)

    async def submission_received(self, submission_id: str) -> DispatchReport:
        """Tell the instructor a submission came in."""
        submission = self.assignments.get_submission(submission_id)
        if submission is None:
            logger.warning(f"Submission {submission_id} not found")
            return DispatchReport()
        assignment = self._load(submission.assignment_id)
        if assignment is None or not assignment.instructor_id:
            return DispatchReport()

        student_name = self.roster.display_name(assignment.course_id, submission.recipient_id)
        context = self._assignment_context(
            NotificationType.SUBMISSION_RECEIVED,
            assignment,
            student_name=student_name or submission.recipient_id,
            is_late=submission.is_late,
        )
        return await self.fanout.dispatch([assignment.instructor_id], context)

    async def submission_graded(self, submission_id: str) -> DispatchReport:
        """Tell the student their submission was graded."""
        submission = self.assignments.get_submission(submission_id)
        if submission is None:
            logger.warning(f"Submission {submission_id} not found")
            return DispatchReport()
        assignment = self._load(submission.assignment_id)
        if assignment is None:
            return DispatchReport()

        context = self._assignment_context(
            NotificationType.SUBMISSION_GRADED,
            assignment,
            grade=submission.grade,
            total_points=assignment.total_points,
            feedback=submission.feedback,
        )
        return await self.fanout.dispatch([submission.recipient_id], context)

    async def extension_granted(self, assignment_id: str, recipient_id: str) -> DispatchReport:
        """Tell the student about their new deadline."""
        assignment = self._load(assignment_id)
        if assignment is None:
            return DispatchReport()
        extension = find_active_extension(assignment_id, recipient_id, self.assignments.extensions_for(assignment_id))
        if extension is None:
            logger.warning(f"No active extension for {recipient_id} on assignment {assignment_id}")
            return DispatchReport()

        context = self._assignment_context(
            NotificationType.EXTENSION_GRANTED,
            assignment,
            original_due_date=normalize_instant(assignment.due_date),
            new_due_date=normalize_instant(extension.new_due_date),
            reason=extension.reason,
        )
        return await self.fanout.dispatch([recipient_id], context)

    async def extension_requested(self, assignment_id: str, recipient_id: str) -> DispatchReport:
        """Tell the instructor a student asked for more time."""
        assignment = self._load(assignment_id)
        if assignment is None or not assignment.instructor_id:
            return DispatchReport()

        context = self._assignment_context(
            NotificationType.EXTENSION_REQUESTED,
            assignment,
            requested_by=recipient_id,
        )
        return await self.fanout.dispatch([assignment.instructor_id], context)
