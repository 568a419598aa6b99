"""Exceptions raised inside the reminder engine."""


class ReminderEngineError(Exception):
    """Base class for reminder engine errors."""


class SchedulingError(ReminderEngineError):
    """An assignment cannot be scheduled (missing, unpublished, bad due date)."""


class ResolutionError(ReminderEngineError):
    """Roster, completion or preference lookups failed for a claimed reminder."""


class TemplateContextError(ReminderEngineError):
    """A notification was rendered without the context fields its type requires."""
