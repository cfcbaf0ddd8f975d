"""Domain exception hierarchy for the event bus package."""

from __future__ import annotations


class EventBusError(RuntimeError):
    """Base class for all event bus errors."""


class ConfigValidationError(EventBusError):
    """Raised when configuration cannot be validated safely."""


class SchedulerError(EventBusError):
    """Raised when a timer facility cannot be created or used."""
