"""Reminder Scheduler Service."""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from deadline_notifier.models.assignment import Assignment
from deadline_notifier.models.reminder import ReminderKind
from deadline_notifier.services.collaborators import AssignmentSource
from deadline_notifier.services.deadline_model import DEFAULT_OVERDUE_GRACE, reminder_instants
from deadline_notifier.services.errors import SchedulingError
from deadline_notifier.services.reminder_store import ReminderStore
from deadline_notifier.utils.clock import normalize_instant, utcnow
from deadline_notifier.utils.metrics import MetricsCollector, metrics_collector

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Derives reminder instants from due dates and keeps the reminder table in step."""

    def __init__(
        self,
        store: ReminderStore,
        assignments: AssignmentSource,
        overdue_grace: timedelta = DEFAULT_OVERDUE_GRACE,
        clock: Callable[[], datetime] = utcnow,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.assignments = assignments
        self.overdue_grace = overdue_grace
        self.clock = clock
        self.metrics = metrics or metrics_collector

    def plan(self, assignment: Assignment, now: Optional[datetime] = None) -> dict:
        """
        Reminder instants that are still strictly in the future.

        Raises:
            SchedulingError: if the assignment is unpublished or its due date is malformed
        """
        if not assignment.is_published:
            raise SchedulingError(f"Assignment {assignment.id} is not published")
        try:
            due_date = normalize_instant(assignment.due_date)
        except (TypeError, ValueError) as e:
            raise SchedulingError(f"Assignment {assignment.id} has a malformed due date: {str(e)}") from e

        now = normalize_instant(now) if now is not None else self.clock()
        return {
            kind: instant
            for kind, instant in reminder_instants(due_date, self.overdue_grace).items()
            if instant > now
        }

    def schedule_reminders(self, assignment: Assignment, now: Optional[datetime] = None) -> List[ReminderKind]:
        """
        Schedule reminders for an assignment based on its due date.

        Called on publish and on any due-date change. Kinds whose instant is
        already past are skipped; the rest are upserted by (assignment, kind).

        Args:
            assignment: Published assignment
            now: Reference instant, defaults to the scheduler's clock

        Returns:
            Kinds that were scheduled; empty when nothing was (scheduling
            errors are logged, not raised)
        """
        try:
            schedule = self.plan(assignment, now)
        except SchedulingError as e:
            logger.warning(f"Not scheduling reminders: {str(e)}")
            return []

        if not schedule:
            logger.info(f"No future reminders for assignment {assignment.id}")
            return []

        rows = self.store.upsert_many(assignment.id, schedule)
        self.metrics.reminders_scheduled(len(rows))
        logger.info(
            f"Scheduled reminders for assignment {assignment.id}: "
            + ", ".join(f"{r.kind.value}@{r.scheduled_for.isoformat()}" for r in rows)
        )
        return [ReminderKind(r.kind) for r in rows]

    def schedule_for_assignment(self, assignment_id: str, now: Optional[datetime] = None) -> List[ReminderKind]:
        """Look the assignment up and schedule it; a missing assignment is a logged no-op."""
        assignment = self.assignments.get(assignment_id)
        if assignment is None:
            logger.warning(f"Not scheduling reminders: assignment {assignment_id} not found")
            return []
        return self.schedule_reminders(assignment, now)

    def cancel_reminders(self, assignment_id: str) -> int:
        """
        Delete the assignment's unprocessed reminders.

        Called on unpublish and delete. Processed rows are history and stay.
        """
        deleted = self.store.delete_unprocessed(assignment_id)
        if deleted:
            self.metrics.reminders_cancelled(deleted)
        logger.info(f"Cancelled {deleted} reminders for assignment {assignment_id}")
        return deleted

    def reschedule_reminders(self, assignment_id: str, now: Optional[datetime] = None) -> List[ReminderKind]:
        """Recompute every reminder from the assignment's current due date."""
        self.cancel_reminders(assignment_id)
        return self.schedule_for_assignment(assignment_id, now)
