"""
Metrics Collection for the deadline notifier.

Counts reminders scheduled, claimed and delivered so operators can spot
systemic delivery problems.
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict

from deadline_notifier.utils.clock import utcnow


class MetricsCollector:
    """Collects and manages metrics for the reminder engine."""

    COUNTERS = (
        "reminders_scheduled_total",
        "reminders_cancelled_total",
        "reminders_claimed_total",
        "claim_races_total",
        "fanout_aborted_total",
        "notifications_sent_total",
        "notifications_failed_total",
        "send_timeouts_total",
    )

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()

        for name in self.COUNTERS:
            self.metrics[name] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    def get(self, metric_name: str) -> int:
        with self.lock:
            return self.metrics[metric_name]

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": utcnow().isoformat()
            }

    def reminders_scheduled(self, count: int = 1):
        self.increment_counter("reminders_scheduled_total", count)

    def reminders_cancelled(self, count: int = 1):
        self.increment_counter("reminders_cancelled_total", count)

    def reminder_claimed(self):
        self.increment_counter("reminders_claimed_total")

    def claim_race_lost(self):
        self.increment_counter("claim_races_total")

    def fanout_aborted(self):
        self.increment_counter("fanout_aborted_total")

    def notification_sent(self):
        """Record that a notification was successfully delivered."""
        self.increment_counter("notifications_sent_total")

    def notification_failed(self):
        """Record that a notification failed to deliver."""
        self.increment_counter("notifications_failed_total")

    def send_timeout(self):
        self.increment_counter("send_timeouts_total")

    @contextmanager
    def time_operation(self, metric_name: str):
        """Context manager to time an operation."""
        start_time = time.monotonic()
        try:
            yield
        finally:
            self.record_timer(metric_name, time.monotonic() - start_time)


# Process-wide instance used by the application wiring
metrics_collector = MetricsCollector()
