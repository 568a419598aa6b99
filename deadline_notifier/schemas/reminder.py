"""Reminder and sweep schemas."""
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from deadline_notifier.models.reminder import ReminderKind


class ReminderResponse(BaseModel):
    """Schema for reminder rows."""
    id: int
    assignment_id: str
    kind: ReminderKind
    scheduled_for: datetime
    processed: bool
    processed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ScheduleResponse(BaseModel):
    """Kinds scheduled for an assignment."""
    assignment_id: str
    scheduled: List[ReminderKind]


class CancelResponse(BaseModel):
    assignment_id: str
    cancelled: int


class SweepRequest(BaseModel):
    """Optional sweep instant; the server clock is used when omitted."""
    now: Optional[datetime] = None


class SweepResponse(BaseModel):
    """Outcome of one sweep."""
    now: datetime
    due: int
    claimed: int
    lost_races: int
    aborted: int
    recipients: int
    sent: int
    failed: int
    claimed_ids: List[int] = []

    class Config:
        from_attributes = True
