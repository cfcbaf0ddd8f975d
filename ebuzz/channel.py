"""Typed view over one event name of an ``EventBus``.

The bus stores listeners type-erased. A ``Channel`` fixes the event name and
the payload type at the call site so that type checkers catch a listener or
payload of the wrong shape:

    saved: Channel[FileSaved] = bus.channel("file.saved", FileSaved)
    saved.register(on_saved)
    saved.emit(FileSaved(path="/tmp/notes.txt"))
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from .bus import EventBus, Unsubscribe

T = TypeVar("T")


@dataclass(frozen=True)
class Channel(Generic[T]):
    """Event name bound to a bus, generic in its payload type."""

    bus: EventBus
    name: str

    def register(self, listener: Callable[[T], None], priority: int = 0) -> Unsubscribe:
        return self.bus.register(self.name, listener, priority)

    def register_once(
        self, listener: Callable[[T], None], priority: int = 0
    ) -> Unsubscribe:
        return self.bus.register_once(self.name, listener, priority)

    def unregister(self, listener: Callable[[T], None]) -> None:
        self.bus.unregister(self.name, listener)

    def with_filter(
        self, listener: Callable[[T], None], predicate: Callable[[T], bool]
    ) -> Unsubscribe:
        return self.bus.with_filter(self.name, listener, predicate)

    def with_throttle(
        self, listener: Callable[[T], None], min_interval: float
    ) -> Unsubscribe:
        return self.bus.with_throttle(self.name, listener, min_interval)

    def replay(self, listener: Callable[[T], None]) -> Unsubscribe:
        return self.bus.replay(self.name, listener)

    def once_with_timeout(
        self, listener: Callable[[T], None], timeout: float
    ) -> Unsubscribe:
        return self.bus.once_with_timeout(self.name, listener, timeout)

    def emit(self, payload: T) -> None:
        self.bus.emit(self.name, payload)

    def emit_with_history(self, payload: T) -> None:
        self.bus.emit_with_history(self.name, payload)

    def listener_count(self) -> int:
        return self.bus.listener_count(self.name)

    def history(self) -> tuple[T, ...]:
        return self.bus.history(self.name)
