"""Shared fixtures: in-memory collaborators, recording senders and a wired engine."""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple

import pytest

from deadline_notifier.db.config import create_db_engine
from deadline_notifier.db.init import init_db
from deadline_notifier.models.assignment import Assignment, Extension, Submission
from deadline_notifier.models.notification import Channel
from deadline_notifier.models.preference import NotificationPreference
from deadline_notifier.providers.base_provider import DeliveryResult
from deadline_notifier.services.notification_fanout import NotificationFanout
from deadline_notifier.services.notification_store import InMemoryNotificationStore
from deadline_notifier.services.reminder_scheduler import ReminderScheduler
from deadline_notifier.services.reminder_store import InMemoryReminderStore
from deadline_notifier.services.sweep_dispatcher import SweepDispatcher
from deadline_notifier.utils.metrics import MetricsCollector

DUE = datetime(2026, 3, 10, 12, 0)


class FakeAssignmentSource:
    def __init__(self):
        self.assignments: Dict[str, Assignment] = {}
        self.courses: Dict[str, str] = {}
        self.extensions: List[Extension] = []
        self.submissions: Dict[str, Submission] = {}

    def add(self, assignment: Assignment, course_title: str = "Algorithms") -> Assignment:
        self.assignments[assignment.id] = assignment
        self.courses[assignment.course_id] = course_title
        return assignment

    def get(self, assignment_id):
        return self.assignments.get(assignment_id)

    def course_title(self, course_id):
        return self.courses.get(course_id)

    def extensions_for(self, assignment_id):
        return [e for e in self.extensions if e.assignment_id == assignment_id]

    def get_submission(self, submission_id):
        return self.submissions.get(submission_id)


class FakeRoster:
    def __init__(self):
        self.enrolled: Dict[str, List[str]] = {}
        self.names: Dict[Tuple[str, str], str] = {}
        self.fail = False

    def enrolled_recipients(self, course_id):
        if self.fail:
            raise ConnectionError("roster service unavailable")
        return list(self.enrolled.get(course_id, []))

    def display_name(self, course_id, recipient_id):
        return self.names.get((course_id, recipient_id))


class FakeCompletion:
    def __init__(self):
        self.completed: Set[Tuple[str, str]] = set()
        self.fail = False

    def has_completed(self, assignment_id, recipient_id):
        if self.fail:
            raise ConnectionError("submission service unavailable")
        return (assignment_id, recipient_id) in self.completed


class FakePreferences:
    def __init__(self):
        self.rows: Dict[str, NotificationPreference] = {}
        self.failing: Set[str] = set()

    def set(self, recipient_id: str, **flags) -> NotificationPreference:
        preference = NotificationPreference(recipient_id=recipient_id, **flags)
        self.rows[recipient_id] = preference
        return preference

    def get(self, recipient_id):
        if recipient_id in self.failing:
            raise LookupError(f"preferences unavailable for {recipient_id}")
        return self.rows.get(recipient_id) or NotificationPreference(recipient_id=recipient_id)


class RecordingSender:
    """Sender double that records every message it is given."""

    def __init__(self, channel: Channel):
        self.channel = channel
        self.sent: List[Tuple[str, object]] = []
        self.fail_for: Set[str] = set()
        self.raise_for: Set[str] = set()
        self.delay: float = 0.0
        self.opened = False

    @property
    def name(self) -> str:
        return self.channel.value.lower()

    async def initialize(self):
        self.opened = True

    async def cleanup(self):
        self.opened = False

    async def send(self, recipient_id, message):
        if self.delay:
            await asyncio.sleep(self.delay)
        if recipient_id in self.raise_for:
            raise RuntimeError("gateway exploded")
        if recipient_id in self.fail_for:
            return DeliveryResult.failed(self.name, "mailbox full")
        self.sent.append((recipient_id, message))
        return DeliveryResult.sent(self.name)


@dataclass
class Harness:
    """Reminder engine wired on in-memory stores."""

    assignments: FakeAssignmentSource
    roster: FakeRoster
    completion: FakeCompletion
    preferences: FakePreferences
    senders: Dict[Channel, RecordingSender]
    reminders: InMemoryReminderStore
    notifications: InMemoryNotificationStore
    metrics: MetricsCollector
    scheduler: ReminderScheduler
    fanout: NotificationFanout
    dispatcher: SweepDispatcher

    def add_assignment(
        self,
        assignment_id: str = "a1",
        due_date: datetime = DUE,
        students: Optional[List[str]] = None,
        is_published: bool = True,
    ) -> Assignment:
        assignment = Assignment(
            id=assignment_id,
            course_id="c1",
            instructor_id="prof",
            title="Graph Search",
            due_date=due_date,
            is_published=is_published,
            total_points=100,
        )
        self.assignments.add(assignment)
        self.roster.enrolled["c1"] = students if students is not None else ["s1", "s2"]
        return assignment

    def sweep(self, now: datetime):
        return asyncio.run(self.dispatcher.run_sweep(now))


@pytest.fixture
def harness() -> Harness:
    assignments = FakeAssignmentSource()
    roster = FakeRoster()
    completion = FakeCompletion()
    preferences = FakePreferences()
    senders = {channel: RecordingSender(channel) for channel in Channel}
    reminders = InMemoryReminderStore()
    notifications = InMemoryNotificationStore()
    metrics = MetricsCollector()
    scheduler = ReminderScheduler(reminders, assignments, metrics=metrics)
    fanout = NotificationFanout(senders, preferences, notifications, send_timeout=0.5, metrics=metrics)
    dispatcher = SweepDispatcher(
        reminders, assignments, roster, completion, preferences, fanout, metrics=metrics
    )
    return Harness(
        assignments=assignments,
        roster=roster,
        completion=completion,
        preferences=preferences,
        senders=senders,
        reminders=reminders,
        notifications=notifications,
        metrics=metrics,
        scheduler=scheduler,
        fanout=fanout,
        dispatcher=dispatcher,
    )


@pytest.fixture
def sql_engine(tmp_path):
    """File-backed SQLite engine so separate connections see the same rows."""
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'notifier.db'}")
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


def hours(n: float) -> timedelta:
    return timedelta(hours=n)
