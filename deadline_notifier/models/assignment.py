"""Course, assignment, extension, enrollment and submission models for SQLModel.

These rows are owned by the course-management side of the platform; the
reminder engine only reads them.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime, UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid

from deadline_notifier.utils.clock import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Course(SQLModel, table=True):
    """Course that owns assignments and a roster."""

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    title: str = Field(max_length=200)


class Assignment(SQLModel, table=True):
    """Assignment with a single course-wide due date."""

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    course_id: str = Field(foreign_key="course.id", index=True, max_length=64)
    instructor_id: Optional[str] = Field(default=None, max_length=64)
    title: str = Field(max_length=200)
    due_date: datetime = Field(sa_type=DateTime)
    is_published: bool = Field(default=False)
    late_policy: str = Field(default="not_accepted", max_length=30)  # not_accepted, accepted, penalized
    total_points: Optional[float] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Extension(SQLModel, table=True):
    """Per-recipient override of an assignment's due date."""

    __table_args__ = (
        UniqueConstraint("assignment_id", "recipient_id", name="uq_extension_assignment_recipient"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    assignment_id: str = Field(foreign_key="assignment.id", index=True, max_length=64)
    recipient_id: str = Field(index=True, max_length=64)
    new_due_date: datetime = Field(sa_type=DateTime)
    reason: Optional[str] = Field(default=None, max_length=500)
    granted_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    is_active: bool = Field(default=True)


class Enrollment(SQLModel, table=True):
    """Roster membership of a recipient in a course."""

    __table_args__ = (
        UniqueConstraint("course_id", "recipient_id", name="uq_enrollment_course_recipient"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: str = Field(foreign_key="course.id", index=True, max_length=64)
    recipient_id: str = Field(index=True, max_length=64)
    display_name: Optional[str] = Field(default=None, max_length=255)


class SubmissionStatus:
    """Submission lifecycle states."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    GRADED = "graded"
    EXCUSED = "excused"


# States that satisfy a deadline reminder
COMPLETED_STATUSES = (SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED, SubmissionStatus.EXCUSED)


class Submission(SQLModel, table=True):
    """A recipient's submission for an assignment."""

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    assignment_id: str = Field(foreign_key="assignment.id", index=True, max_length=64)
    recipient_id: str = Field(index=True, max_length=64)
    status: str = Field(default=SubmissionStatus.SUBMITTED, max_length=20)
    submitted_at: Optional[datetime] = Field(default_factory=utcnow, sa_type=DateTime)
    is_late: bool = Field(default=False)
    grade: Optional[float] = Field(default=None)
    feedback: Optional[str] = Field(default=None, max_length=2000)
    graded_at: Optional[datetime] = Field(default=None, sa_type=DateTime)

    @property
    def is_completed(self) -> bool:
        return self.status in COMPLETED_STATUSES
