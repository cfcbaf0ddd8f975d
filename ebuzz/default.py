"""Composition-root access to a shared bus.

The engine in ``ebuzz.bus`` never reaches for a global. Applications that
want one process-wide bus build it here, once, and hand it to the parts that
need it.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from pydantic import ValidationError

from .bus import EventBus
from .config import Config, load_config
from .exceptions import ConfigValidationError
from .scheduler import create_scheduler

LOGGER = logging.getLogger(__name__)

_default_bus: EventBus | None = None
_default_lock = threading.Lock()


def create_bus(config: dict[str, Any] | None = None) -> EventBus:
    """Build a bus from a config mapping (see ``load_config``).

    ``None`` loads the configuration; any mapping given, even an empty one,
    is validated as is, with missing sections taking their defaults.
    """
    raw = config if config is not None else load_config()
    try:
        bus_config = Config.model_validate(raw).bus
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid bus configuration: {exc}") from exc
    return EventBus(
        scheduler=create_scheduler(bus_config.scheduler),
        log_failures=bus_config.log_failures,
    )


def get_default_bus() -> EventBus:
    """Return the process-wide bus, building it on first use."""
    global _default_bus
    with _default_lock:
        if _default_bus is None:
            _default_bus = create_bus()
            LOGGER.debug("bus.default.created", extra={"event": "bus.default.created"})
        return _default_bus


def set_default_bus(bus: EventBus) -> None:
    """Install a host-constructed bus as the process-wide bus."""
    global _default_bus
    with _default_lock:
        _default_bus = bus


def reset_default_bus() -> None:
    """Forget the process-wide bus; the next ``get_default_bus`` builds a new one."""
    global _default_bus
    with _default_lock:
        _default_bus = None
