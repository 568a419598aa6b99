"""Reminder model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime, UniqueConstraint
from datetime import datetime
from enum import Enum
from typing import Optional

from deadline_notifier.utils.clock import utcnow


class ReminderKind(str, Enum):
    """Reminder firing opportunities derived from a due date."""
    DUE_IN_48H = "DUE_IN_48H"
    DUE_IN_24H = "DUE_IN_24H"
    OVERDUE = "OVERDUE"


class Reminder(SQLModel, table=True):
    """One scheduled (assignment, kind, instant) firing opportunity.

    At most one row exists per (assignment_id, kind); rescheduling overwrites
    the row in place.
    """

    __tablename__ = "assignment_reminder"
    __table_args__ = (
        UniqueConstraint("assignment_id", "kind", name="uq_reminder_assignment_kind"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    assignment_id: str = Field(index=True, max_length=64)
    kind: ReminderKind
    scheduled_for: datetime = Field(index=True, sa_type=DateTime)
    processed: bool = Field(default=False, index=True)
    processed_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    def copy_row(self) -> "Reminder":
        """Detached copy, used by the in-memory store."""
        return Reminder(
            id=self.id,
            assignment_id=self.assignment_id,
            kind=self.kind,
            scheduled_for=self.scheduled_for,
            processed=self.processed,
            processed_at=self.processed_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
