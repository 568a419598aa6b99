"""
Collaborator interfaces consumed by the reminder engine, with SQLModel-backed
implementations.

The engine only depends on the protocols; the course-management tables are
owned elsewhere and are read here, never written.
"""

from typing import List, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from deadline_notifier.models.assignment import (
    COMPLETED_STATUSES,
    Assignment,
    Course,
    Enrollment,
    Extension,
    Submission,
)
from deadline_notifier.models.notification import Channel
from deadline_notifier.models.preference import NotificationPreference


class AssignmentSource(Protocol):
    def get(self, assignment_id: str) -> Optional[Assignment]: ...

    def course_title(self, course_id: str) -> Optional[str]: ...

    def extensions_for(self, assignment_id: str) -> List[Extension]: ...

    def get_submission(self, submission_id: str) -> Optional[Submission]: ...


class RosterProvider(Protocol):
    def enrolled_recipients(self, course_id: str) -> List[str]: ...

    def display_name(self, course_id: str, recipient_id: str) -> Optional[str]: ...


class CompletionChecker(Protocol):
    def has_completed(self, assignment_id: str, recipient_id: str) -> bool: ...


class PreferenceStore(Protocol):
    def get(self, recipient_id: str) -> NotificationPreference: ...


class ContactDirectory(Protocol):
    def address_for(self, recipient_id: str, channel: Channel) -> Optional[str]: ...


class PreferenceContactDirectory:
    """Resolves delivery addresses from the contact fields on preferences."""

    def __init__(self, preferences: PreferenceStore):
        self.preferences = preferences

    def address_for(self, recipient_id: str, channel: Channel) -> Optional[str]:
        return self.preferences.get(recipient_id).address_for(channel)


class SqlAssignmentSource:
    """Reads assignments, courses, extensions and submissions."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, assignment_id: str) -> Optional[Assignment]:
        with Session(self.engine) as session:
            return session.get(Assignment, assignment_id)

    def course_title(self, course_id: str) -> Optional[str]:
        with Session(self.engine) as session:
            course = session.get(Course, course_id)
            return course.title if course else None

    def extensions_for(self, assignment_id: str) -> List[Extension]:
        with Session(self.engine) as session:
            statement = select(Extension).where(Extension.assignment_id == assignment_id)
            return list(session.exec(statement).all())

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        with Session(self.engine) as session:
            return session.get(Submission, submission_id)


class SqlRosterProvider:
    """Course roster from the enrollment table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def enrolled_recipients(self, course_id: str) -> List[str]:
        with Session(self.engine) as session:
            statement = (
                select(Enrollment.recipient_id)
                .where(Enrollment.course_id == course_id)
                .order_by(Enrollment.id)
            )
            return list(session.exec(statement).all())

    def display_name(self, course_id: str, recipient_id: str) -> Optional[str]:
        with Session(self.engine) as session:
            statement = (
                select(Enrollment.display_name)
                .where(Enrollment.course_id == course_id)
                .where(Enrollment.recipient_id == recipient_id)
            )
            return session.exec(statement).first()


class SqlCompletionChecker:
    """A recipient is complete once a submission reaches a terminal status."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def has_completed(self, assignment_id: str, recipient_id: str) -> bool:
        with Session(self.engine) as session:
            statement = (
                select(Submission.id)
                .where(Submission.assignment_id == assignment_id)
                .where(Submission.recipient_id == recipient_id)
                .where(Submission.status.in_(COMPLETED_STATUSES))
            )
            return session.exec(statement).first() is not None


class SqlPreferenceStore:
    """Preferences by recipient; recipients without a row get the defaults."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, recipient_id: str) -> NotificationPreference:
        with Session(self.engine) as session:
            preference = session.get(NotificationPreference, recipient_id)
        if preference is None:
            return NotificationPreference(recipient_id=recipient_id)
        return preference
