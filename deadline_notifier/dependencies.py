"""Service wiring shared by the API, the sweep worker and tests."""
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.engine import Engine

from deadline_notifier.config import Settings, get_settings
from deadline_notifier.db.config import get_engine
from deadline_notifier.models.notification import Channel
from deadline_notifier.providers.base_provider import ChannelSender, build_senders
from deadline_notifier.services.assignment_notifications import AssignmentNotificationService
from deadline_notifier.services.collaborators import (
    AssignmentSource,
    CompletionChecker,
    PreferenceContactDirectory,
    PreferenceStore,
    RosterProvider,
    SqlAssignmentSource,
    SqlCompletionChecker,
    SqlPreferenceStore,
    SqlRosterProvider,
)
from deadline_notifier.services.notification_fanout import NotificationFanout
from deadline_notifier.services.notification_store import NotificationStore, SqlNotificationStore
from deadline_notifier.services.reminder_scheduler import ReminderScheduler
from deadline_notifier.services.reminder_store import ReminderStore, SqlReminderStore
from deadline_notifier.services.sweep_dispatcher import SweepDispatcher


@dataclass
class ServiceContainer:
    """Every service the engine needs, built once per process."""

    settings: Settings
    reminders: ReminderStore
    notifications: NotificationStore
    assignments: AssignmentSource
    roster: RosterProvider
    completion: CompletionChecker
    preferences: PreferenceStore
    senders: Dict[Channel, ChannelSender]
    scheduler: ReminderScheduler
    fanout: NotificationFanout
    dispatcher: SweepDispatcher
    events: AssignmentNotificationService


def assemble_container(
    settings: Settings,
    reminders: ReminderStore,
    notifications: NotificationStore,
    assignments: AssignmentSource,
    roster: RosterProvider,
    completion: CompletionChecker,
    preferences: PreferenceStore,
    senders: Optional[Dict[Channel, ChannelSender]] = None,
) -> ServiceContainer:
    """Wire the services on top of already-built stores and collaborators."""
    if senders is None:
        senders = build_senders(settings.provider_config(), PreferenceContactDirectory(preferences))

    scheduler = ReminderScheduler(
        reminders,
        assignments,
        overdue_grace=timedelta(minutes=settings.overdue_grace_minutes),
    )
    fanout = NotificationFanout(
        senders,
        preferences,
        notifications,
        send_timeout=settings.send_timeout_seconds,
        max_concurrency=settings.fanout_max_concurrency,
        base_url=settings.app_base_url,
    )
    dispatcher = SweepDispatcher(reminders, assignments, roster, completion, preferences, fanout)
    return ServiceContainer(
        settings=settings,
        reminders=reminders,
        notifications=notifications,
        assignments=assignments,
        roster=roster,
        completion=completion,
        preferences=preferences,
        senders=senders,
        scheduler=scheduler,
        fanout=fanout,
        dispatcher=dispatcher,
        events=AssignmentNotificationService(assignments, roster, scheduler, fanout),
    )


def build_container(engine: Optional[Engine] = None, settings: Optional[Settings] = None) -> ServiceContainer:
    """SQL-backed container for the configured database."""
    settings = settings or get_settings()
    engine = engine or get_engine()
    return assemble_container(
        settings,
        reminders=SqlReminderStore(engine),
        notifications=SqlNotificationStore(engine),
        assignments=SqlAssignmentSource(engine),
        roster=SqlRosterProvider(engine),
        completion=SqlCompletionChecker(engine),
        preferences=SqlPreferenceStore(engine),
    )


def get_container(request: Request) -> ServiceContainer:
    """Dependency returning the application's service container."""
    return request.app.state.container


def get_scheduler(container: ServiceContainer = Depends(get_container)) -> ReminderScheduler:
    return container.scheduler


def get_dispatcher(container: ServiceContainer = Depends(get_container)) -> SweepDispatcher:
    return container.dispatcher


def get_reminder_store(container: ServiceContainer = Depends(get_container)) -> ReminderStore:
    return container.reminders


def get_notification_store(container: ServiceContainer = Depends(get_container)) -> NotificationStore:
    return container.notifications
