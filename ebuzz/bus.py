"""Process-local publish/subscribe bus with priority-ordered dispatch.

Usage:
    bus = EventBus()

    def on_saved(payload):
        print(f"Saved: {payload['path']}")

    unsubscribe = bus.register("file.saved", on_saved, priority=-1)
    bus.emit("file.saved", {"path": "/tmp/notes.txt"})
    unsubscribe()

Listeners run synchronously on the caller's thread, lowest priority first.
Every dispatch iterates over a snapshot of the listener sequence, so
listeners may register, unsubscribe, or emit again while being called
without disturbing the delivery already in progress.
"""

from __future__ import annotations

import bisect
from collections.abc import Callable
from dataclasses import dataclass
import logging
import threading
import time
from typing import TYPE_CHECKING, Any, TypeVar

from .scheduler import Scheduler, ThreadingScheduler, TimerHandle

if TYPE_CHECKING:
    from .channel import Channel

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]
ErrorListener = Callable[[BaseException], None]
Predicate = Callable[[T], bool]
Unsubscribe = Callable[[], None]


@dataclass(eq=False)
class _Registration:
    """One entry in a listener sequence.

    Entries compare by identity so that registering the same callable twice
    yields two independently removable entries. ``handler`` is what dispatch
    calls; it differs from ``listener`` only for gated replay entries.
    """

    listener: Callable[[Any], None]
    priority: int = 0
    handler: Callable[[Any], None] | None = None

    def __post_init__(self) -> None:
        if self.handler is None:
            self.handler = self.listener


def _describe(listener: Callable[..., Any]) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)


class EventBus:
    """Typed publish/subscribe bus for in-process events.

    Owns four pieces of state: the per-name listener registry, the wildcard
    listener list, the error listener list, and the per-name payload history.
    All mutations and snapshot reads happen under one re-entrant lock;
    listeners themselves are always invoked outside it.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] | None = None,
        log_failures: bool = True,
    ) -> None:
        self._listeners: dict[str, list[_Registration]] = {}
        self._wildcard_listeners: list[_Registration] = []
        self._error_listeners: list[_Registration] = []
        self._history: dict[str, list[Any]] = {}
        self._in_flight: dict[str, list[tuple[object, Any]]] = {}
        self._lock = threading.RLock()
        self._scheduler: Scheduler = scheduler or ThreadingScheduler()
        self._clock: Callable[[], float] = clock or time.monotonic
        self._log_failures = log_failures

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self, event_name: str, listener: Listener[T], priority: int = 0
    ) -> Unsubscribe:
        """Subscribe ``listener`` to ``event_name``.

        Args:
            event_name: Event to listen for (e.g. "file.saved")
            listener: Callable invoked with the emitted payload
            priority: Lower values fire first; ties keep registration order

        Returns:
            A zero-argument callable removing exactly this registration.
        """
        entry = _Registration(listener, priority)
        with self._lock:
            self._insert_entry(event_name, entry)
        return self._entry_unsubscriber(event_name, entry)

    on = register

    def _insert_entry(self, event_name: str, entry: _Registration) -> None:
        # Callers hold self._lock.
        sequence = self._listeners.setdefault(event_name, [])
        bisect.insort_right(sequence, entry, key=lambda item: item.priority)
        LOGGER.debug(
            "bus.listener.registered",
            extra={
                "event": "bus.listener.registered",
                "event_name": event_name,
                "listener": _describe(entry.listener),
                "priority": entry.priority,
            },
        )

    def _entry_unsubscriber(self, event_name: str, entry: _Registration) -> Unsubscribe:
        def unsubscribe() -> None:
            self._remove_entry(event_name, entry)

        return unsubscribe

    def register_once(
        self, event_name: str, listener: Listener[T], priority: int = 0
    ) -> Unsubscribe:
        """Subscribe ``listener`` for a single successful delivery.

        The returned callable removes the one-shot adapter, so calling it
        before the event fires prevents delivery.
        """
        unsubscribe: Unsubscribe

        def once_listener(payload: T) -> None:
            listener(payload)
            unsubscribe()

        once_listener.__qualname__ = f"once({_describe(listener)})"
        unsubscribe = self.register(event_name, once_listener, priority)
        return unsubscribe

    once = register_once

    def register_wildcard(self, listener: Listener[Any]) -> Unsubscribe:
        """Subscribe ``listener`` to every emitted event regardless of name."""
        entry = _Registration(listener)
        with self._lock:
            self._wildcard_listeners.append(entry)
        LOGGER.debug(
            "bus.listener.registered",
            extra={
                "event": "bus.listener.registered",
                "event_name": "*",
                "listener": _describe(listener),
            },
        )

        def unsubscribe() -> None:
            with self._lock:
                self._wildcard_listeners = [
                    item for item in self._wildcard_listeners if item is not entry
                ]

        return unsubscribe

    def set_error_handler(self, error_listener: ErrorListener) -> Unsubscribe:
        """Add a callback receiving every failure raised by a listener.

        Error listeners are called in registration order. An error listener
        that raises is not guarded: the exception propagates out of ``emit``.
        """
        entry = _Registration(error_listener)
        with self._lock:
            self._error_listeners.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                self._error_listeners = [
                    item for item in self._error_listeners if item is not entry
                ]

        return unsubscribe

    def unregister(self, event_name: str, listener: Listener[T]) -> None:
        """Remove every registration of ``listener`` under ``event_name``.

        Unlike the callable returned by ``register``, this matches on the
        listener value, so duplicate registrations are all removed. Adapters
        created by ``register_once`` or the ``with_*`` helpers are not the
        caller's listener and are left alone.
        """
        with self._lock:
            sequence = self._listeners.get(event_name)
            if sequence is None:
                return
            self._listeners[event_name] = [
                item for item in sequence if item.listener != listener
            ]
        LOGGER.debug(
            "bus.listener.removed",
            extra={
                "event": "bus.listener.removed",
                "event_name": event_name,
                "listener": _describe(listener),
            },
        )

    off = unregister

    def _remove_entry(self, event_name: str, entry: _Registration) -> None:
        with self._lock:
            sequence = self._listeners.get(event_name)
            if sequence is None:
                return
            self._listeners[event_name] = [
                item for item in sequence if item is not entry
            ]

    def remove_all(self, event_name: str | None = None) -> None:
        """Drop listeners for one event name, or every named and wildcard listener.

        Error listeners and history are never touched here.
        """
        with self._lock:
            if event_name is not None:
                self._listeners.pop(event_name, None)
            else:
                self._listeners = {}
                self._wildcard_listeners = []

    def reset(self) -> None:
        """Clear named, wildcard, and error listeners.

        History survives a reset; use ``clear_history`` to drop it.
        """
        with self._lock:
            self._listeners = {}
            self._wildcard_listeners = []
            self._error_listeners = []

    def clear_history(self, event_name: str | None = None) -> None:
        """Forget recorded payloads for one event name, or for all of them."""
        with self._lock:
            if event_name is not None:
                self._history.pop(event_name, None)
            else:
                self._history = {}

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def emit(self, event_name: str, payload: T) -> None:
        """Deliver ``payload`` to the listeners of ``event_name``, then to wildcards."""
        with self._lock:
            named = tuple(self._listeners.get(event_name, ()))
        self._deliver(event_name, named, payload)

    def emit_with_history(self, event_name: str, payload: T) -> None:
        """Emit ``payload`` and then append it to the history of ``event_name``.

        Listeners run outside the lock. Until the append, the payload is kept
        as in flight, and a ``replay`` started meanwhile delivers it as
        history because this emission's snapshot cannot include the replayed
        listener.
        """
        token = object()
        with self._lock:
            named = tuple(self._listeners.get(event_name, ()))
            self._in_flight.setdefault(event_name, []).append((token, payload))
        delivered = False
        try:
            self._deliver(event_name, named, payload)
            delivered = True
        finally:
            with self._lock:
                pending = [
                    item
                    for item in self._in_flight.get(event_name, ())
                    if item[0] is not token
                ]
                if pending:
                    self._in_flight[event_name] = pending
                else:
                    self._in_flight.pop(event_name, None)
                if delivered:
                    self._history.setdefault(event_name, []).append(payload)

    def _deliver(
        self, event_name: str, named: tuple[_Registration, ...], payload: Any
    ) -> None:
        for entry in named:
            self._safe_invoke(event_name, entry.handler, payload)

        with self._lock:
            wildcards = tuple(self._wildcard_listeners)
        for entry in wildcards:
            self._safe_invoke(event_name, entry.handler, payload)

    def _safe_invoke(
        self, event_name: str, listener: Callable[[Any], None], payload: Any
    ) -> None:
        try:
            listener(payload)
        except Exception as exc:
            if payload is None:
                LOGGER.debug(
                    "bus.listener.failure_ignored",
                    extra={
                        "event": "bus.listener.failure_ignored",
                        "event_name": event_name,
                        "listener": _describe(listener),
                        "error_type": type(exc).__name__,
                    },
                )
                return
            if self._log_failures:
                LOGGER.warning(
                    "bus.listener.failed",
                    extra={
                        "event": "bus.listener.failed",
                        "event_name": event_name,
                        "listener": _describe(listener),
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
            self._handle_error(exc)

    def _handle_error(self, error: Exception) -> None:
        with self._lock:
            error_listeners = tuple(self._error_listeners)
        for entry in error_listeners:
            entry.listener(error)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def listener_count(self, event_name: str) -> int:
        """Return listeners for ``event_name`` plus every wildcard listener."""
        with self._lock:
            return len(self._listeners.get(event_name, ())) + len(
                self._wildcard_listeners
            )

    def history(self, event_name: str) -> tuple[Any, ...]:
        """Return the payloads recorded by ``emit_with_history`` for ``event_name``."""
        with self._lock:
            return tuple(self._history.get(event_name, ()))

    def channel(self, event_name: str, payload_type: type[T] | None = None) -> Channel[T]:
        """Return a view of this bus bound to one event name and payload type.

        ``payload_type`` only binds ``T`` for type checkers; payloads are not
        checked against it at runtime.
        """
        from .channel import Channel

        return Channel(self, event_name)

    # ------------------------------------------------------------------
    # Listener adapters
    # ------------------------------------------------------------------

    def with_filter(
        self, event_name: str, listener: Listener[T], predicate: Predicate[T]
    ) -> Unsubscribe:
        """Subscribe ``listener`` only for payloads accepted by ``predicate``."""

        def filtered_listener(payload: T) -> None:
            if predicate(payload):
                listener(payload)

        filtered_listener.__qualname__ = f"filter({_describe(listener)})"
        return self.register(event_name, filtered_listener)

    def with_throttle(
        self, event_name: str, listener: Listener[T], min_interval: float
    ) -> Unsubscribe:
        """Subscribe ``listener`` but deliver at most once per ``min_interval`` seconds.

        Each call gets its own timestamp; throttled registrations never share
        state with one another.
        """
        last_invoked: float | None = None

        def throttled_listener(payload: T) -> None:
            nonlocal last_invoked
            now = self._clock()
            if last_invoked is None or now - last_invoked >= min_interval:
                listener(payload)
                last_invoked = now

        throttled_listener.__qualname__ = f"throttle({_describe(listener)})"
        return self.register(event_name, throttled_listener)

    def replay(self, event_name: str, listener: Listener[T]) -> Unsubscribe:
        """Deliver the recorded history of ``event_name``, then subscribe ``listener``.

        The listener is registered before the history is delivered, behind a
        gate that buffers live payloads until every recorded one has been
        handed over. Nothing emitted in between is lost or seen twice, and no
        listener runs under the bus lock.

        History is delivered directly, without error isolation: an exception
        from ``listener`` propagates and the registration is removed. Live
        payloads released from the buffer go through the usual isolation.
        """
        gate = threading.Lock()
        buffered: list[Any] = []
        replaying = True

        def replay_listener(payload: T) -> None:
            with gate:
                if replaying:
                    buffered.append(payload)
                    return
            listener(payload)

        replay_listener.__qualname__ = f"replay({_describe(listener)})"
        entry = _Registration(listener, handler=replay_listener)
        with self._lock:
            past = tuple(self._history.get(event_name, ())) + tuple(
                payload for _, payload in self._in_flight.get(event_name, ())
            )
            self._insert_entry(event_name, entry)
        unsubscribe = self._entry_unsubscriber(event_name, entry)

        try:
            for payload in past:
                listener(payload)
        except Exception:
            unsubscribe()
            raise

        while True:
            with gate:
                if not buffered:
                    replaying = False
                    break
                released = list(buffered)
                buffered.clear()
            for payload in released:
                self._safe_invoke(event_name, listener, payload)
        return unsubscribe

    def once_with_timeout(
        self, event_name: str, listener: Listener[T], timeout: float
    ) -> Unsubscribe:
        """Subscribe ``listener`` once, giving up after ``timeout`` seconds.

        Whichever comes first, the event or the timeout, removes the
        registration. A delivery that returns normally cancels the pending
        timer, and so does calling the returned callable. If ``listener``
        raises, the one-shot stays registered and the timer stays armed, so
        the timeout still removes it.
        """
        timer: TimerHandle | None = None

        def timed_listener(payload: T) -> None:
            listener(payload)
            if timer is not None:
                timer.cancel()

        timed_listener.__qualname__ = f"timeout({_describe(listener)})"
        unsubscribe_once = self.register_once(event_name, timed_listener)

        def expire() -> None:
            LOGGER.debug(
                "bus.once.timeout",
                extra={
                    "event": "bus.once.timeout",
                    "event_name": event_name,
                    "listener": _describe(listener),
                    "timeout": timeout,
                },
            )
            unsubscribe_once()

        timer = self._scheduler.call_later(timeout, expire)

        def unsubscribe() -> None:
            timer.cancel()
            unsubscribe_once()

        return unsubscribe
