"""Logging utilities for the tabletop session server."""

from .event_log import EventLogger, EventRecord

__all__ = ["EventLogger", "EventRecord"]
