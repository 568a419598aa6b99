"""Reminder router: scheduling, due listing and the sweep trigger."""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from datetime import datetime

from deadline_notifier.dependencies import (
    get_dispatcher,
    get_reminder_store,
    get_scheduler,
)
from deadline_notifier.schemas.reminder import (
    CancelResponse,
    ReminderResponse,
    ScheduleResponse,
    SweepRequest,
    SweepResponse,
)
from deadline_notifier.services.reminder_scheduler import ReminderScheduler
from deadline_notifier.services.reminder_store import ReminderStore
from deadline_notifier.services.sweep_dispatcher import SweepDispatcher
from deadline_notifier.utils.clock import normalize_instant, utcnow

router = APIRouter(tags=["Reminders"])  # No prefix since main.py adds /api prefix


def _require_assignment(scheduler: ReminderScheduler, assignment_id: str):
    assignment = scheduler.assignments.get(assignment_id)
    if assignment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Assignment not found"
        )
    return assignment


@router.get("/assignments/{assignment_id}/reminders", response_model=List[ReminderResponse])
async def list_reminders(
    assignment_id: str,
    store: ReminderStore = Depends(get_reminder_store),
):
    """List reminder rows for an assignment, processed ones included."""
    return store.list_for_assignment(assignment_id)


@router.post("/assignments/{assignment_id}/reminders", response_model=ScheduleResponse)
async def schedule_reminders(
    assignment_id: str,
    scheduler: ReminderScheduler = Depends(get_scheduler),
):
    """Schedule reminders from the assignment's due date (publish hook)."""
    assignment = _require_assignment(scheduler, assignment_id)
    return ScheduleResponse(
        assignment_id=assignment_id,
        scheduled=scheduler.schedule_reminders(assignment),
    )


@router.put("/assignments/{assignment_id}/reminders", response_model=ScheduleResponse)
async def reschedule_reminders(
    assignment_id: str,
    scheduler: ReminderScheduler = Depends(get_scheduler),
):
    """Recompute reminders after a due-date change."""
    _require_assignment(scheduler, assignment_id)
    return ScheduleResponse(
        assignment_id=assignment_id,
        scheduled=scheduler.reschedule_reminders(assignment_id),
    )


@router.delete("/assignments/{assignment_id}/reminders", response_model=CancelResponse)
async def cancel_reminders(
    assignment_id: str,
    scheduler: ReminderScheduler = Depends(get_scheduler),
):
    """Cancel unprocessed reminders (unpublish/delete hook)."""
    return CancelResponse(
        assignment_id=assignment_id,
        cancelled=scheduler.cancel_reminders(assignment_id),
    )


@router.get("/reminders/due", response_model=List[ReminderResponse])
async def list_due_reminders(
    now: Optional[datetime] = Query(None, description="Reference instant (ISO format), defaults to server time"),
    store: ReminderStore = Depends(get_reminder_store),
):
    """Reminders that a sweep at `now` would claim."""
    return store.find_due(normalize_instant(now) if now is not None else utcnow())


@router.post("/reminders/sweep", response_model=SweepResponse)
async def run_sweep(
    body: Optional[SweepRequest] = None,
    dispatcher: SweepDispatcher = Depends(get_dispatcher),
):
    """Run one sweep; the periodic trigger (cron or worker) calls this."""
    now = body.now if body is not None and body.now is not None else utcnow()
    return await dispatcher.run_sweep(now)
