"""Tests for listener failure isolation and error listeners."""

from __future__ import annotations

import unittest
from unittest.mock import Mock

from ebuzz.bus import EventBus


class SafeInvocationTests(unittest.TestCase):
    """Validate that one failing listener never stops the others."""

    def setUp(self) -> None:
        self.bus = EventBus()

    def test_failure_is_reported_to_every_error_listener_in_order(self) -> None:
        calls: list[tuple[str, BaseException]] = []
        failure = ValueError("listener exploded")
        self.bus.set_error_handler(lambda error: calls.append(("first", error)))
        self.bus.set_error_handler(lambda error: calls.append(("second", error)))
        self.bus.register("testEvent", Mock(side_effect=failure))

        self.bus.emit("testEvent", {"message": "x"})

        self.assertEqual(calls, [("first", failure), ("second", failure)])

    def test_failure_with_none_payload_is_swallowed(self) -> None:
        errors = Mock()
        after = Mock()
        self.bus.set_error_handler(errors)
        self.bus.register("testEvent", Mock(side_effect=ValueError("boom")))
        self.bus.register("testEvent", after)

        with self.assertLogs("ebuzz.bus", level="DEBUG") as logs:
            self.bus.emit("testEvent", None)

        errors.assert_not_called()
        after.assert_called_once_with(None)
        self.assertTrue(
            any("bus.listener.failure_ignored" in line for line in logs.output)
        )

    def test_falsy_but_present_payload_still_reports(self) -> None:
        errors = Mock()
        self.bus.set_error_handler(errors)
        self.bus.register("testEvent", Mock(side_effect=ValueError("boom")))

        self.bus.emit("testEvent", 0)
        self.bus.emit("testEvent", "")

        self.assertEqual(errors.call_count, 2)

    def test_later_listeners_still_run_after_a_failure(self) -> None:
        later = Mock()
        wildcard = Mock()
        self.bus.register("testEvent", Mock(side_effect=RuntimeError("boom")))
        self.bus.register("testEvent", later)
        self.bus.register_wildcard(wildcard)

        self.bus.emit("testEvent", {"message": "x"})

        later.assert_called_once_with({"message": "x"})
        wildcard.assert_called_once_with({"message": "x"})

    def test_wildcard_failures_are_reported(self) -> None:
        errors = Mock()
        failure = KeyError("missing")
        self.bus.set_error_handler(errors)
        self.bus.register_wildcard(Mock(side_effect=failure))

        self.bus.emit("anything", {"message": "x"})

        errors.assert_called_once_with(failure)

    def test_failing_error_listener_propagates_to_emitter(self) -> None:
        after = Mock()
        self.bus.set_error_handler(Mock(side_effect=RuntimeError("handler broke")))
        self.bus.register("testEvent", Mock(side_effect=ValueError("boom")))
        self.bus.register("testEvent", after)

        with self.assertRaisesRegex(RuntimeError, "handler broke"):
            self.bus.emit("testEvent", {"message": "x"})

        after.assert_not_called()

    def test_failure_is_logged_as_warning(self) -> None:
        self.bus.register("testEvent", Mock(side_effect=ValueError("boom")))

        with self.assertLogs("ebuzz.bus", level="WARNING") as logs:
            self.bus.emit("testEvent", {"message": "x"})

        self.assertTrue(any("bus.listener.failed" in line for line in logs.output))

    def test_failure_logging_can_be_disabled(self) -> None:
        bus = EventBus(log_failures=False)
        errors = Mock()
        bus.set_error_handler(errors)
        bus.register("testEvent", Mock(side_effect=ValueError("boom")))

        with self.assertNoLogs("ebuzz.bus", level="WARNING"):
            bus.emit("testEvent", {"message": "x"})

        errors.assert_called_once()

    def test_error_handler_unsubscribe(self) -> None:
        kept = Mock()
        removed = Mock()
        self.bus.set_error_handler(kept)
        unsubscribe = self.bus.set_error_handler(removed)
        unsubscribe()
        unsubscribe()
        self.bus.register("testEvent", Mock(side_effect=ValueError("boom")))

        self.bus.emit("testEvent", {"message": "x"})

        kept.assert_called_once()
        removed.assert_not_called()

    def test_history_is_recorded_even_when_a_listener_fails(self) -> None:
        errors = Mock()
        self.bus.set_error_handler(errors)
        self.bus.register("testEvent", Mock(side_effect=ValueError("boom")))

        self.bus.emit_with_history("testEvent", {"message": "x"})

        self.assertEqual(self.bus.history("testEvent"), ({"message": "x"},))
        errors.assert_called_once()


if __name__ == "__main__":
    unittest.main()
