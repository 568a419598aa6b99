"""Routers package for the deadline notifier API."""

from .notifications import router as notifications_router
from .reminders import router as reminders_router

__all__ = ["notifications_router", "reminders_router"]
