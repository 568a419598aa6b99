"""
Notification Fan-out.

Delivers one logical notification to many recipients over every channel each
of them has enabled. Every (recipient, channel) pair is sent and accounted
for independently; one failure never blocks another delivery.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from deadline_notifier.models.notification import (
    Channel,
    NotificationRecord,
    NotificationStatus,
)
from deadline_notifier.models.preference import NotificationPreference
from deadline_notifier.providers.base_provider import ChannelSender, DeliveryResult
from deadline_notifier.services.collaborators import PreferenceStore
from deadline_notifier.services.errors import TemplateContextError
from deadline_notifier.services.notification_store import NotificationStore
from deadline_notifier.services.notification_types import MessageContext, get_template, render
from deadline_notifier.utils.clock import utcnow
from deadline_notifier.utils.logger import StructuredLogger, get_logger
from deadline_notifier.utils.metrics import MetricsCollector, metrics_collector

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    """Counts of one fan-out call."""

    sent: int = 0
    failed: int = 0
    skipped_recipients: int = 0
    records: List[NotificationRecord] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.sent + self.failed


class NotificationFanout:
    """Per-recipient, per-channel delivery with preference filtering and accounting."""

    def __init__(
        self,
        senders: Mapping[Channel, ChannelSender],
        preferences: PreferenceStore,
        notification_store: NotificationStore,
        send_timeout: float = 10.0,
        max_concurrency: int = 10,
        base_url: str = "",
        metrics: Optional[MetricsCollector] = None,
        event_logger: Optional[StructuredLogger] = None,
    ):
        self.senders = dict(senders)
        self.preferences = preferences
        self.notification_store = notification_store
        self.send_timeout = send_timeout
        self.max_concurrency = max(1, max_concurrency)
        self.base_url = base_url
        self.metrics = metrics or metrics_collector
        self.events = event_logger or get_logger("deadline-notifier.fanout")

    async def dispatch(
        self,
        recipients: Sequence[str],
        context: MessageContext,
        recipient_fields: Optional[Mapping[str, Mapping]] = None,
        preferences: Optional[Mapping[str, NotificationPreference]] = None,
    ) -> DispatchReport:
        """
        Send a notification to every recipient on each enabled, opted-in channel.

        Args:
            recipients: Recipient ids; duplicates are sent once
            context: Notification type and shared template fields
            recipient_fields: Per-recipient template fields (e.g. effective due date)
            preferences: Already-resolved preferences, looked up when absent

        Returns:
            DispatchReport with sent/failed counts and the written records
        """
        report = DispatchReport()
        template = get_template(context.notification_type)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        jobs = []

        for recipient_id in dict.fromkeys(recipients):
            try:
                if preferences is not None and recipient_id in preferences:
                    preference = preferences[recipient_id]
                else:
                    preference = self.preferences.get(recipient_id)
            except Exception as e:
                logger.error(f"Preference lookup failed for recipient {recipient_id}: {str(e)}")
                report.skipped_recipients += 1
                continue

            if not preference.allows(template.category):
                report.skipped_recipients += 1
                continue

            channels = [c for c in preference.enabled_channels() if c in self.senders]
            if not channels:
                report.skipped_recipients += 1
                continue

            recipient_context = context.for_recipient((recipient_fields or {}).get(recipient_id))
            for channel in channels:
                jobs.append(self._deliver(semaphore, recipient_id, channel, recipient_context))

        results = await asyncio.gather(*jobs, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                # _deliver accounts for its own failures; this is a bug guard
                logger.error(f"Unexpected fan-out error: {result!r}")
                report.failed += 1
                continue
            report.records.append(result)
            if result.status == NotificationStatus.SENT:
                report.sent += 1
            else:
                report.failed += 1
        return report

    async def _deliver(
        self,
        semaphore: asyncio.Semaphore,
        recipient_id: str,
        channel: Channel,
        context: MessageContext,
    ) -> NotificationRecord:
        template = get_template(context.notification_type)
        record = NotificationRecord(
            recipient_id=recipient_id,
            channel=channel,
            category=template.category,
            notification_type=context.notification_type,
            priority=template.priority,
            assignment_id=context.assignment_id,
            reminder_id=context.reminder_id,
            title=template.title,
        )

        async with semaphore:
            record.attempted_at = utcnow()
            try:
                message = render(context, channel, self.base_url)
            except TemplateContextError as e:
                result = DeliveryResult.failed(channel.value.lower(), str(e))
            else:
                record.title = message.title
                record.message = message.body
                record.action_url = message.action_url
                result = await self._send(recipient_id, channel, message)

        if result.success:
            record.status = NotificationStatus.SENT
            record.sent_at = utcnow()
            self.metrics.notification_sent()
        else:
            record.status = NotificationStatus.FAILED
            record.error = (result.error or "unknown error")[:1000]
            self.metrics.notification_failed()
            self.events.warning(
                "Delivery failed",
                recipient_id=recipient_id,
                channel=channel.value,
                notification_type=context.notification_type.value,
                assignment_id=context.assignment_id,
                error=record.error,
            )

        try:
            return self.notification_store.record(record)
        except Exception as e:
            # The delivery already happened; a lost audit row must not fail others
            logger.error(f"Failed to write notification record for {recipient_id}/{channel.value}: {str(e)}")
            return record

    async def _send(self, recipient_id: str, channel: Channel, message) -> DeliveryResult:
        sender = self.senders[channel]
        try:
            return await asyncio.wait_for(sender.send(recipient_id, message), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            self.metrics.send_timeout()
            return DeliveryResult.failed(sender.name, f"timed out after {self.send_timeout}s")
        except Exception as e:
            logger.exception(f"{sender.name} sender raised for recipient {recipient_id}")
            return DeliveryResult.failed(sender.name, str(e) or e.__class__.__name__)
