from datetime import datetime, timedelta

from conftest import DUE, hours
from deadline_notifier.models.assignment import Extension
from deadline_notifier.models.notification import Channel, NotificationStatus, NotificationType
from deadline_notifier.models.reminder import ReminderKind


def _sent_to(harness, channel):
    return [recipient for recipient, _ in harness.senders[channel].sent]


def _schedule(harness, **kwargs):
    assignment = harness.add_assignment(**kwargs)
    harness.scheduler.schedule_reminders(assignment, now=DUE - hours(72))
    return assignment


def test_48h_sweep_sends_every_enabled_channel(harness):
    _schedule(harness)

    report = harness.sweep(DUE - hours(48))

    assert report.due == 1
    assert report.claimed == 1
    assert report.sent == 4
    assert report.failed == 0
    assert report.recipients == 2
    assert sorted(_sent_to(harness, Channel.EMAIL)) == ["s1", "s2"]
    assert sorted(_sent_to(harness, Channel.IN_APP)) == ["s1", "s2"]
    assert _sent_to(harness, Channel.SMS) == []

    records = harness.notifications.records
    assert len(records) == 4
    assert {(r.recipient_id, r.channel) for r in records} == {
        ("s1", Channel.EMAIL), ("s1", Channel.IN_APP), ("s2", Channel.EMAIL), ("s2", Channel.IN_APP),
    }
    assert all(r.status == NotificationStatus.SENT for r in records)
    assert all(r.notification_type == NotificationType.ASSIGNMENT_DUE_REMINDER_48H for r in records)
    assert all(r.reminder_id == report.claimed_ids[0] for r in records)


def test_second_sweep_a_minute_later_does_nothing(harness):
    _schedule(harness)
    harness.sweep(DUE - hours(48))

    report = harness.sweep(DUE - hours(48) + timedelta(minutes=1))

    assert report.due == 0
    assert report.claimed == 0
    assert len(harness.notifications.records) == 4


def test_completed_recipient_is_skipped_but_reminder_is_processed(harness):
    _schedule(harness)
    harness.completion.completed.add(("a1", "s1"))

    report = harness.sweep(DUE - hours(48))

    assert report.claimed == 1
    assert "s1" not in _sent_to(harness, Channel.EMAIL)
    assert _sent_to(harness, Channel.EMAIL) == ["s2"]
    row = harness.reminders.get(report.claimed_ids[0])
    assert row.processed


def test_recipient_submitting_after_48h_batch_misses_24h_batch(harness):
    _schedule(harness)
    harness.sweep(DUE - hours(48))
    assert sorted(_sent_to(harness, Channel.EMAIL)) == ["s1", "s2"]

    # s1 submits at T-30h
    harness.completion.completed.add(("a1", "s1"))
    harness.senders[Channel.EMAIL].sent.clear()
    report = harness.sweep(DUE - hours(24))

    assert report.claimed == 1
    assert _sent_to(harness, Channel.EMAIL) == ["s2"]
    message = harness.senders[Channel.EMAIL].sent[0][1]
    assert message.notification_type == NotificationType.ASSIGNMENT_DUE_REMINDER_24H


def test_extension_beyond_48h_excludes_recipient_from_48h_reminder(harness):
    _schedule(harness)
    harness.assignments.extensions.append(
        Extension(
            assignment_id="a1",
            recipient_id="s2",
            new_due_date=DUE + hours(24),
            granted_at=datetime(2026, 3, 1),
        )
    )

    report = harness.sweep(DUE - hours(48))

    assert _sent_to(harness, Channel.EMAIL) == ["s1"]
    assert report.recipients == 1


def test_extended_recipient_is_not_sent_overdue_notice(harness):
    _schedule(harness)
    harness.assignments.extensions.append(
        Extension(
            assignment_id="a1",
            recipient_id="s2",
            new_due_date=DUE + hours(24),
            granted_at=datetime(2026, 3, 1),
        )
    )

    # Every kind is due at once; each recipient only lands in the window their own deadline puts them in
    harness.sweep(DUE + hours(1))

    by_type = {}
    for recipient, message in harness.senders[Channel.EMAIL].sent:
        by_type.setdefault(message.notification_type, []).append(recipient)
    assert by_type == {
        NotificationType.ASSIGNMENT_DUE_REMINDER_24H: ["s2"],
        NotificationType.ASSIGNMENT_OVERDUE: ["s1"],
    }


def test_message_carries_effective_due_date_and_hours_remaining(harness):
    _schedule(harness)
    harness.sweep(DUE - hours(48))

    message = harness.senders[Channel.IN_APP].sent[0][1]
    assert message.data["hours_remaining"] == 48
    assert message.data["due_date"] == DUE
    assert "due in 48 hours" in message.body


def test_opted_out_recipient_is_excluded(harness):
    _schedule(harness)
    harness.preferences.set("s1", assignment_deadlines=False)

    harness.sweep(DUE - hours(48))

    assert _sent_to(harness, Channel.EMAIL) == ["s2"]


def test_assignment_deleted_before_48h_reminder_sends_nothing(harness):
    _schedule(harness)

    # Deleted at T-50h
    assert harness.scheduler.cancel_reminders("a1") == 3
    del harness.assignments.assignments["a1"]

    report = harness.sweep(DUE - hours(48))

    assert report.due == 0
    assert report.claimed == 0
    assert harness.notifications.records == []


def test_cancel_between_find_and_claim_skips_the_row(harness):
    _schedule(harness)
    original_find_due = harness.reminders.find_due

    def find_then_cancel(now):
        due = original_find_due(now)
        harness.scheduler.cancel_reminders("a1")
        return due

    harness.reminders.find_due = find_then_cancel
    report = harness.sweep(DUE - hours(48))

    assert report.due == 1
    assert report.claimed == 0
    assert report.lost_races == 1
    assert harness.notifications.records == []


def test_due_date_moved_between_find_and_claim_fires_at_new_instant(harness):
    assignment = _schedule(harness)
    original_find_due = harness.reminders.find_due

    def find_then_reschedule(now):
        due = original_find_due(now)
        assignment.due_date = DUE + hours(72)
        harness.scheduler.schedule_reminders(assignment, now=now)
        return due

    harness.reminders.find_due = find_then_reschedule
    report = harness.sweep(DUE - hours(48))

    assert report.due == 1
    assert report.claimed == 0
    assert report.lost_races == 1
    assert harness.notifications.records == []

    harness.reminders.find_due = original_find_due
    report = harness.sweep(DUE + hours(24))

    assert report.claimed == 1
    assert report.sent == 4
    assert {r.notification_type for r in harness.notifications.records} == {
        NotificationType.ASSIGNMENT_DUE_REMINDER_48H
    }


def test_cancel_after_claim_does_not_stop_delivery(harness):
    _schedule(harness)
    original_claim = harness.reminders.claim

    def claim_then_cancel(reminder_id, now=None):
        won = original_claim(reminder_id, now)
        harness.scheduler.cancel_reminders("a1")
        return won

    harness.reminders.claim = claim_then_cancel
    report = harness.sweep(DUE - hours(48))

    assert report.claimed == 1
    assert report.sent == 4
    kinds = [r.kind for r in harness.reminders.list_for_assignment("a1")]
    assert kinds == [ReminderKind.DUE_IN_48H]


def test_unpublished_assignment_aborts_batch(harness):
    assignment = _schedule(harness)
    assignment.is_published = False

    report = harness.sweep(DUE - hours(48))

    assert report.claimed == 1
    assert report.aborted == 1
    assert harness.notifications.records == []
    assert harness.reminders.get(report.claimed_ids[0]).processed
    assert harness.metrics.get("fanout_aborted_total") == 1


def test_roster_failure_aborts_batch_but_keeps_claim(harness):
    _schedule(harness)
    harness.roster.fail = True

    report = harness.sweep(DUE - hours(48))

    assert report.aborted == 1
    assert harness.reminders.get(report.claimed_ids[0]).processed
    assert harness.sweep(DUE - hours(47)).claimed == 0


def test_overdue_due_rows_from_several_assignments_in_one_sweep(harness):
    _schedule(harness, assignment_id="a1")
    harness.add_assignment(assignment_id="a2", due_date=DUE - hours(2))
    harness.scheduler.schedule_reminders(harness.assignments.get("a2"), now=DUE - hours(72))

    report = harness.sweep(DUE - hours(1))

    # a1: 48H and 24H due; a2: 48H, 24H and OVERDUE due
    assert report.due == 5
    assert report.claimed == 5
    overdue = [
        r for r in harness.notifications.records
        if r.notification_type == NotificationType.ASSIGNMENT_OVERDUE
    ]
    assert {r.assignment_id for r in overdue} == {"a2"}


def test_fanout_error_is_logged_and_sweep_moves_on(harness):
    _schedule(harness, assignment_id="a1")
    _schedule(harness, assignment_id="a2")
    original_dispatch = harness.fanout.dispatch

    async def dispatch_failing_for_a1(recipients, context, **kwargs):
        if context.assignment_id == "a1":
            raise RuntimeError("template store unreachable")
        return await original_dispatch(recipients, context, **kwargs)

    harness.fanout.dispatch = dispatch_failing_for_a1
    report = harness.sweep(DUE - hours(48))

    assert report.claimed == 2
    assert report.aborted == 1
    assert report.sent == 4
    assert {r.assignment_id for r in harness.notifications.records} == {"a2"}
    assert all(harness.reminders.get(rid).processed for rid in report.claimed_ids)
    assert harness.metrics.get("fanout_aborted_total") == 1


def test_completion_lookup_failure_aborts_batch(harness):
    _schedule(harness)
    harness.completion.fail = True

    report = harness.sweep(DUE - hours(48))

    assert report.claimed == 1
    assert report.aborted == 1
    assert harness.notifications.records == []
    assert harness.reminders.get(report.claimed_ids[0]).processed


def test_preference_lookup_failure_aborts_batch(harness):
    _schedule(harness)
    harness.preferences.failing.add("s2")

    report = harness.sweep(DUE - hours(48))

    assert report.claimed == 1
    assert report.aborted == 1
    assert report.sent == 0
    assert harness.notifications.records == []
    assert harness.senders[Channel.EMAIL].sent == []
    assert harness.reminders.get(report.claimed_ids[0]).processed


def test_extension_between_firings_receives_no_reminder(harness):
    _schedule(harness)
    harness.assignments.extensions.append(
        Extension(
            assignment_id="a1",
            recipient_id="s2",
            new_due_date=DUE + hours(12),
            granted_at=datetime(2026, 3, 1),
        )
    )

    for now in (DUE - hours(48), DUE - hours(24), DUE + hours(1)):
        harness.sweep(now)

    recipients = {r.recipient_id for r in harness.notifications.records}
    assert recipients == {"s1"}
    assert len({r.notification_type for r in harness.notifications.records}) == 3
