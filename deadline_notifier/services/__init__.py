"""Reminder scheduling, sweep dispatch and notification fan-out."""
