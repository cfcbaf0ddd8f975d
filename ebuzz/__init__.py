"""Top-level package for ebuzz, a typed in-process event bus."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .bus import EventBus, Unsubscribe
from .channel import Channel
from .exceptions import ConfigValidationError, EventBusError, SchedulerError
from .scheduler import AsyncioScheduler, Scheduler, ThreadingScheduler

if TYPE_CHECKING:
    from .config import load_config
    from .default import create_bus, get_default_bus, reset_default_bus, set_default_bus
    from .logging_utils import configure_logging

__all__ = [
    "AsyncioScheduler",
    "Channel",
    "ConfigValidationError",
    "EventBus",
    "EventBusError",
    "Scheduler",
    "SchedulerError",
    "ThreadingScheduler",
    "Unsubscribe",
    "configure_logging",
    "create_bus",
    "get_default_bus",
    "load_config",
    "reset_default_bus",
    "set_default_bus",
]

_DEFAULT_EXPORTS = {"create_bus", "get_default_bus", "reset_default_bus", "set_default_bus"}


def __getattr__(name: str) -> Any:
    """Lazily import symbols that pull in pydantic or structlog."""
    if name == "load_config":
        from .config import load_config

        return load_config
    if name == "configure_logging":
        from .logging_utils import configure_logging

        return configure_logging
    if name in _DEFAULT_EXPORTS:
        from . import default

        return getattr(default, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
