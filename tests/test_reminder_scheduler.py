from conftest import DUE, hours
from deadline_notifier.models.reminder import ReminderKind


def _kinds(rows):
    return sorted(r.kind.value for r in rows)


def test_schedule_creates_one_row_per_kind(harness):
    assignment = harness.add_assignment()
    kinds = harness.scheduler.schedule_reminders(assignment, now=DUE - hours(72))

    assert set(kinds) == set(ReminderKind)
    rows = harness.reminders.list_for_assignment("a1")
    assert _kinds(rows) == ["DUE_IN_24H", "DUE_IN_48H", "OVERDUE"]
    assert all(not r.processed for r in rows)
    assert harness.metrics.get("reminders_scheduled_total") == 3


def test_scheduling_twice_is_idempotent(harness):
    assignment = harness.add_assignment()
    harness.scheduler.schedule_reminders(assignment, now=DUE - hours(72))
    harness.scheduler.schedule_reminders(assignment, now=DUE - hours(72))

    rows = harness.reminders.list_for_assignment("a1")
    assert len(rows) == 3
    assert _kinds(rows) == ["DUE_IN_24H", "DUE_IN_48H", "OVERDUE"]


def test_past_instants_are_skipped(harness):
    assignment = harness.add_assignment()
    kinds = harness.scheduler.schedule_reminders(assignment, now=DUE - hours(30))
    assert set(kinds) == {ReminderKind.DUE_IN_24H, ReminderKind.OVERDUE}


def test_instant_equal_to_now_is_not_scheduled(harness):
    assignment = harness.add_assignment()
    kinds = harness.scheduler.schedule_reminders(assignment, now=DUE - hours(48))
    assert ReminderKind.DUE_IN_48H not in kinds


def test_unpublished_assignment_is_not_scheduled(harness):
    assignment = harness.add_assignment(is_published=False)
    assert harness.scheduler.schedule_reminders(assignment, now=DUE - hours(72)) == []
    assert harness.reminders.list_for_assignment("a1") == []


def test_malformed_due_date_is_logged_not_raised(harness):
    assignment = harness.add_assignment()
    assignment.due_date = "not a date"
    assert harness.scheduler.schedule_reminders(assignment, now=DUE - hours(72)) == []


def test_missing_assignment_is_a_no_op(harness):
    assert harness.scheduler.schedule_for_assignment("nope", now=DUE) == []


def test_cancel_removes_only_unprocessed_rows(harness):
    assignment = harness.add_assignment()
    harness.scheduler.schedule_reminders(assignment, now=DUE - hours(72))
    row_48h = next(r for r in harness.reminders.list_for_assignment("a1") if r.kind == ReminderKind.DUE_IN_48H)
    assert harness.reminders.claim(row_48h.id, DUE - hours(48))

    assert harness.scheduler.cancel_reminders("a1") == 2
    remaining = harness.reminders.list_for_assignment("a1")
    assert [r.kind for r in remaining] == [ReminderKind.DUE_IN_48H]
    assert remaining[0].processed


def test_reschedule_after_due_date_moves_forward(harness):
    assignment = harness.add_assignment()
    harness.scheduler.schedule_reminders(assignment, now=DUE - hours(72))
    harness.sweep(DUE - hours(48))

    new_due = DUE + hours(72)
    assignment.due_date = new_due
    kinds = harness.scheduler.reschedule_reminders("a1", now=DUE - hours(47))

    assert set(kinds) == set(ReminderKind)
    rows = {r.kind: r for r in harness.reminders.list_for_assignment("a1")}
    assert len(rows) == 3
    assert rows[ReminderKind.DUE_IN_48H].scheduled_for == new_due - hours(48)
    assert rows[ReminderKind.DUE_IN_24H].scheduled_for == new_due - hours(24)
    assert rows[ReminderKind.OVERDUE].scheduled_for == new_due + hours(1)
    assert all(not r.processed for r in rows.values())


def test_reschedule_keeps_processed_row_when_instant_has_passed(harness):
    assignment = harness.add_assignment()
    harness.scheduler.schedule_reminders(assignment, now=DUE - hours(72))
    harness.sweep(DUE - hours(48))

    assignment.due_date = DUE + hours(1)
    harness.scheduler.reschedule_reminders("a1", now=DUE - hours(40))

    rows = {r.kind: r for r in harness.reminders.list_for_assignment("a1")}
    assert rows[ReminderKind.DUE_IN_48H].processed
    assert rows[ReminderKind.DUE_IN_48H].scheduled_for == DUE - hours(48)
    assert not rows[ReminderKind.DUE_IN_24H].processed
