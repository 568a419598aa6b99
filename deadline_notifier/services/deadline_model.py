"""Deadline model.

Pure functions computing effective due dates, reminder instants and reminder
windows. Nothing here performs I/O.
"""
import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional, Tuple

from deadline_notifier.models.assignment import Assignment, Extension
from deadline_notifier.models.reminder import ReminderKind
from deadline_notifier.utils.clock import normalize_instant

DEFAULT_OVERDUE_GRACE = timedelta(hours=1)

# (exclusive lower bound, inclusive upper bound) on time remaining until the
# recipient's effective due date; None means unbounded.
REMINDER_WINDOWS: Dict[ReminderKind, Tuple[Optional[timedelta], Optional[timedelta]]] = {
    ReminderKind.DUE_IN_48H: (timedelta(hours=24), timedelta(hours=48)),
    ReminderKind.DUE_IN_24H: (timedelta(0), timedelta(hours=24)),
    ReminderKind.OVERDUE: (None, timedelta(0)),
}


def reminder_offsets(overdue_grace: timedelta = DEFAULT_OVERDUE_GRACE) -> Dict[ReminderKind, timedelta]:
    """Offset of each reminder kind relative to the due date."""
    return {
        ReminderKind.DUE_IN_48H: -timedelta(hours=48),
        ReminderKind.DUE_IN_24H: -timedelta(hours=24),
        ReminderKind.OVERDUE: overdue_grace,
    }


def reminder_instants(
    due_date: datetime,
    overdue_grace: timedelta = DEFAULT_OVERDUE_GRACE,
) -> Dict[ReminderKind, datetime]:
    """Instant at which each reminder kind fires for the given due date."""
    due_date = normalize_instant(due_date)
    return {kind: due_date + offset for kind, offset in reminder_offsets(overdue_grace).items()}


def find_active_extension(
    assignment_id: str,
    recipient_id: str,
    extensions: Iterable[Extension],
) -> Optional[Extension]:
    """
    Return the recipient's active extension for the assignment, if any.

    Should more than one active row slip through, the most recently granted
    one wins.
    """
    matches = [
        ext for ext in extensions
        if ext.assignment_id == assignment_id and ext.recipient_id == recipient_id and ext.is_active
    ]
    if not matches:
        return None
    return max(matches, key=lambda ext: normalize_instant(ext.granted_at))


def effective_due_date(
    assignment: Assignment,
    recipient_id: str,
    extensions: Iterable[Extension] = (),
) -> datetime:
    """
    Due date binding on one recipient.

    An active extension overrides the assignment's due date as given, even
    when it is earlier than the original; whether earlier extensions should
    be allowed is decided by whoever grants them.

    Args:
        assignment: Assignment being checked
        recipient_id: Recipient whose deadline is wanted
        extensions: Extensions known for the assignment

    Returns:
        Naive UTC datetime
    """
    extension = find_active_extension(assignment.id, recipient_id, extensions)
    if extension is not None:
        return normalize_instant(extension.new_due_date)
    return normalize_instant(assignment.due_date)


def hours_remaining(due_date: datetime, now: datetime) -> int:
    """Whole hours until the due date, floored (negative once overdue)."""
    seconds = (normalize_instant(due_date) - normalize_instant(now)).total_seconds()
    return math.floor(seconds / 3600)


def within_reminder_window(kind: ReminderKind, due_date: datetime, now: datetime) -> bool:
    """True if a recipient due at ``due_date`` belongs in this kind's firing at ``now``."""
    remaining = normalize_instant(due_date) - normalize_instant(now)
    lower, upper = REMINDER_WINDOWS[kind]
    if lower is not None and remaining <= lower:
        return False
    if upper is not None and remaining > upper:
        return False
    return True
