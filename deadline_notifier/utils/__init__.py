"""Shared utilities: clock helpers, structured logging and metrics."""
