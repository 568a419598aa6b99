import asyncio

from conftest import DUE
from deadline_notifier.models.notification import Channel, NotificationStatus, NotificationType
from deadline_notifier.providers.base_provider import DeliveryResult
from deadline_notifier.services.notification_types import MessageContext


def _context(**overrides):
    fields = {
        "assignment_id": "a1",
        "assignment_title": "Graph Search",
        "course_name": "Algorithms",
        "due_date": DUE,
        "hours_remaining": 48,
    }
    fields.update(overrides)
    return MessageContext(
        notification_type=NotificationType.ASSIGNMENT_DUE_REMINDER_48H,
        fields=fields,
        assignment_id="a1",
        reminder_id=7,
    )


def _dispatch(harness, recipients, context=None, **kwargs):
    return asyncio.run(harness.fanout.dispatch(recipients, context or _context(), **kwargs))


def test_failure_for_one_recipient_does_not_block_others(harness):
    harness.senders[Channel.EMAIL].fail_for.add("s1")

    report = _dispatch(harness, ["s1", "s2"])

    assert report.sent == 3
    assert report.failed == 1
    failed = [r for r in report.records if r.status == NotificationStatus.FAILED]
    assert [(r.recipient_id, r.channel) for r in failed] == [("s1", Channel.EMAIL)]
    assert failed[0].error == "mailbox full"
    assert failed[0].sent_at is None
    assert harness.metrics.get("notifications_failed_total") == 1
    assert harness.metrics.get("notifications_sent_total") == 3


def test_raising_sender_becomes_failed_record(harness):
    harness.senders[Channel.IN_APP].raise_for.add("s2")

    report = _dispatch(harness, ["s1", "s2"])

    assert report.failed == 1
    failed = next(r for r in report.records if r.status == NotificationStatus.FAILED)
    assert failed.recipient_id == "s2"
    assert "gateway exploded" in failed.error


def test_slow_sender_times_out(harness):
    harness.fanout.send_timeout = 0.05
    harness.senders[Channel.EMAIL].delay = 1.0

    report = _dispatch(harness, ["s1"])

    email = next(r for r in report.records if r.channel == Channel.EMAIL)
    in_app = next(r for r in report.records if r.channel == Channel.IN_APP)
    assert email.status == NotificationStatus.FAILED
    assert "timed out" in email.error
    assert in_app.status == NotificationStatus.SENT
    assert harness.metrics.get("send_timeouts_total") == 1


def test_only_enabled_channels_are_used(harness):
    harness.preferences.set("s1", email_enabled=False, sms_enabled=True, push_enabled=True)

    report = _dispatch(harness, ["s1"])

    assert sorted(r.channel.value for r in report.records) == ["IN_APP", "PUSH", "SMS"]


def test_category_opt_out_skips_recipient(harness):
    harness.preferences.set("s1", assignment_deadlines=False)

    report = _dispatch(harness, ["s1", "s2"])

    assert report.skipped_recipients == 1
    assert {r.recipient_id for r in report.records} == {"s2"}


def test_recipient_without_any_channel_is_skipped(harness):
    harness.preferences.set("s1", email_enabled=False, in_app_enabled=False)

    report = _dispatch(harness, ["s1"])

    assert report.skipped_recipients == 1
    assert report.records == []


def test_preference_lookup_failure_skips_only_that_recipient(harness):
    harness.preferences.failing.add("s1")

    report = _dispatch(harness, ["s1", "s2"])

    assert report.skipped_recipients == 1
    assert report.sent == 2


def test_duplicate_recipients_are_sent_once(harness):
    report = _dispatch(harness, ["s1", "s1", "s1"])
    assert report.sent == 2


def test_missing_template_field_fails_delivery_without_sending(harness):
    context = _context()
    del context.fields["hours_remaining"]

    report = _dispatch(harness, ["s1"], context=context)

    assert report.sent == 0
    assert report.failed == 2
    assert harness.senders[Channel.EMAIL].sent == []
    assert all("hours_remaining" in r.error for r in report.records)


def test_per_recipient_fields_override_shared_fields(harness):
    _dispatch(harness, ["s1", "s2"], recipient_fields={"s2": {"hours_remaining": 30}})

    bodies = {recipient: message.body for recipient, message in harness.senders[Channel.IN_APP].sent}
    assert "due in 48 hours" in bodies["s1"]
    assert "due in 30 hours" in bodies["s2"]


def test_records_are_persisted_with_final_status(harness):
    harness.senders[Channel.EMAIL].fail_for.add("s1")

    _dispatch(harness, ["s1"])

    stored = harness.notifications.records
    assert {r.status for r in stored} == {NotificationStatus.SENT, NotificationStatus.FAILED}
    assert all(r.reminder_id == 7 for r in stored)
    assert all(r.title == "Assignment Due in 48 Hours" for r in stored)


def test_store_failure_does_not_fail_other_deliveries(harness):
    calls = []

    def flaky_record(record):
        calls.append(record)
        if len(calls) == 1:
            raise RuntimeError("disk full")
        return record

    harness.notifications.record = flaky_record
    report = _dispatch(harness, ["s1", "s2"])

    assert report.sent == 4
    assert len(calls) == 4


def test_concurrency_is_bounded(harness):
    harness.fanout.max_concurrency = 2
    in_flight = []
    peak = []

    class CountingSender:
        name = "in_app"

        async def send(self, recipient_id, message):
            in_flight.append(recipient_id)
            peak.append(len(in_flight))
            await asyncio.sleep(0.01)
            in_flight.remove(recipient_id)
            return DeliveryResult.sent(self.name)

    harness.fanout.senders = {Channel.IN_APP: CountingSender()}
    report = _dispatch(harness, [f"s{i}" for i in range(6)])

    assert report.sent == 6
    assert max(peak) <= 2
