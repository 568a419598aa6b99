"""
Sweep Dispatcher.

One sweep claims every due reminder, works out who still needs it and hands
them to the fan-out. The claim, not delivery success, marks a reminder as
done: a reminder is attempted at most once even if resolution or delivery
fails afterwards.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from deadline_notifier.models.assignment import Assignment
from deadline_notifier.models.notification import NotificationCategory
from deadline_notifier.models.preference import NotificationPreference
from deadline_notifier.models.reminder import Reminder, ReminderKind
from deadline_notifier.services.collaborators import (
    AssignmentSource,
    CompletionChecker,
    PreferenceStore,
    RosterProvider,
)
from deadline_notifier.services.deadline_model import (
    effective_due_date,
    hours_remaining,
    within_reminder_window,
)
from deadline_notifier.services.errors import ResolutionError
from deadline_notifier.services.notification_fanout import DispatchReport, NotificationFanout
from deadline_notifier.services.notification_types import REMINDER_NOTIFICATION_TYPES, MessageContext
from deadline_notifier.services.reminder_store import ReminderStore
from deadline_notifier.utils.clock import normalize_instant
from deadline_notifier.utils.logger import StructuredLogger, get_logger
from deadline_notifier.utils.metrics import MetricsCollector, metrics_collector

logger = logging.getLogger(__name__)


@dataclass
class RecipientTarget:
    recipient_id: str
    effective_due_date: datetime
    hours_remaining: int


@dataclass
class ReminderBatch:
    """Recipients resolved for one claimed reminder."""

    reminder: Reminder
    assignment: Assignment
    course_name: str
    targets: List[RecipientTarget] = field(default_factory=list)
    preferences: Dict[str, NotificationPreference] = field(default_factory=dict)
    excluded_completed: int = 0
    excluded_window: int = 0
    excluded_opted_out: int = 0


@dataclass
class SweepReport:
    """Outcome of one sweep."""

    now: datetime
    due: int = 0
    claimed: int = 0
    lost_races: int = 0
    aborted: int = 0
    recipients: int = 0
    sent: int = 0
    failed: int = 0
    claimed_ids: List[int] = field(default_factory=list)


class SweepDispatcher:
    """Claims due reminders and fans them out to the recipients who still need them."""

    def __init__(
        self,
        reminders: ReminderStore,
        assignments: AssignmentSource,
        roster: RosterProvider,
        completion: CompletionChecker,
        preferences: PreferenceStore,
        fanout: NotificationFanout,
        metrics: Optional[MetricsCollector] = None,
        event_logger: Optional[StructuredLogger] = None,
    ):
        self.reminders = reminders
        self.assignments = assignments
        self.roster = roster
        self.completion = completion
        self.preferences = preferences
        self.fanout = fanout
        self.metrics = metrics or metrics_collector
        self.events = event_logger or get_logger("deadline-notifier.sweep")

    async def run_sweep(self, now: datetime) -> SweepReport:
        """
        Run one sweep as of ``now``.

        The caller supplies the time; the dispatcher never reads the clock.

        Args:
            now: Sweep instant

        Returns:
            SweepReport with claim and delivery counts
        """
        now = normalize_instant(now)
        report = SweepReport(now=now)

        with self.metrics.time_operation("sweep_seconds"):
            due = self.reminders.find_due(now)
            report.due = len(due)

            for reminder in due:
                if not self.reminders.claim(reminder.id, now):
                    # Another worker got there first, or the row was cancelled
                    report.lost_races += 1
                    self.metrics.claim_race_lost()
                    logger.debug(f"Reminder {reminder.id} already claimed, skipping")
                    continue

                report.claimed += 1
                report.claimed_ids.append(reminder.id)
                self.metrics.reminder_claimed()

                dispatch = await self._process_claimed(reminder, now)
                if dispatch is None:
                    report.aborted += 1
                    continue
                report.recipients += len({r.recipient_id for r in dispatch.records})
                report.sent += dispatch.sent
                report.failed += dispatch.failed

        if report.due:
            self.events.info(
                "Sweep finished",
                now=now,
                due=report.due,
                claimed=report.claimed,
                lost_races=report.lost_races,
                aborted=report.aborted,
                sent=report.sent,
                failed=report.failed,
            )
        return report

    async def _process_claimed(self, reminder: Reminder, now: datetime) -> Optional[DispatchReport]:
        try:
            batch = self.resolve_recipients(reminder, now)
        except ResolutionError as e:
            self.metrics.fanout_aborted()
            self.events.error(
                "Reminder fan-out aborted",
                reminder_id=reminder.id,
                assignment_id=reminder.assignment_id,
                kind=reminder.kind,
                error=str(e),
            )
            return None

        self.events.info(
            "Reminder resolved",
            reminder_id=reminder.id,
            assignment_id=reminder.assignment_id,
            kind=reminder.kind,
            recipients=len(batch.targets),
            excluded_completed=batch.excluded_completed,
            excluded_window=batch.excluded_window,
            excluded_opted_out=batch.excluded_opted_out,
        )
        if not batch.targets:
            return DispatchReport()

        context = MessageContext(
            notification_type=REMINDER_NOTIFICATION_TYPES[ReminderKind(reminder.kind)],
            fields={
                "assignment_id": batch.assignment.id,
                "assignment_title": batch.assignment.title,
                "course_name": batch.course_name,
                "due_date": normalize_instant(batch.assignment.due_date),
            },
            assignment_id=batch.assignment.id,
            reminder_id=reminder.id,
        )
        recipient_fields = {
            t.recipient_id: {"due_date": t.effective_due_date, "hours_remaining": t.hours_remaining}
            for t in batch.targets
        }
        try:
            return await self.fanout.dispatch(
                [t.recipient_id for t in batch.targets],
                context,
                recipient_fields=recipient_fields,
                preferences=batch.preferences,
            )
        except Exception:
            self.metrics.fanout_aborted()
            self.events.exception(
                "Reminder fan-out raised",
                reminder_id=reminder.id,
                assignment_id=reminder.assignment_id,
            )
            return None

    def resolve_recipients(self, reminder: Reminder, now: datetime) -> ReminderBatch:
        """
        Recipients of a claimed reminder, as of claim time.

        Keeps enrolled recipients who have not completed the assignment, whose
        effective due date puts them inside this reminder's window, and who
        have not opted out of deadline notifications.

        Raises:
            ResolutionError: if the assignment is gone or unpublished, or a lookup fails
        """
        now = normalize_instant(now)
        kind = ReminderKind(reminder.kind)
        try:
            assignment = self.assignments.get(reminder.assignment_id)
        except Exception as e:
            raise ResolutionError(f"Assignment lookup failed: {str(e)}") from e
        if assignment is None:
            raise ResolutionError(f"Assignment {reminder.assignment_id} no longer exists")
        if not assignment.is_published:
            raise ResolutionError(f"Assignment {assignment.id} is not published")

        try:
            course_name = self.assignments.course_title(assignment.course_id) or assignment.course_id
            extensions = self.assignments.extensions_for(assignment.id)
            roster = self.roster.enrolled_recipients(assignment.course_id)
        except Exception as e:
            raise ResolutionError(f"Roster lookup failed for assignment {assignment.id}: {str(e)}") from e

        batch = ReminderBatch(reminder=reminder, assignment=assignment, course_name=course_name)
        for recipient_id in dict.fromkeys(roster):
            try:
                completed = self.completion.has_completed(assignment.id, recipient_id)
            except Exception as e:
                raise ResolutionError(f"Completion lookup failed for {recipient_id}: {str(e)}") from e
            if completed:
                batch.excluded_completed += 1
                continue

            due = effective_due_date(assignment, recipient_id, extensions)
            if not within_reminder_window(kind, due, now):
                batch.excluded_window += 1
                continue

            try:
                preference = self.preferences.get(recipient_id)
            except Exception as e:
                raise ResolutionError(f"Preference lookup failed for {recipient_id}: {str(e)}") from e
            if not preference.allows(NotificationCategory.ASSIGNMENT_DEADLINES):
                batch.excluded_opted_out += 1
                continue

            batch.preferences[recipient_id] = preference
            batch.targets.append(
                RecipientTarget(
                    recipient_id=recipient_id,
                    effective_due_date=due,
                    hours_remaining=hours_remaining(due, now),
                )
            )
        return batch
