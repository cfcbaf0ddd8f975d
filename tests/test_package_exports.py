"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import ebuzz


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_eager_exports(self) -> None:
        self.assertIsNotNone(ebuzz.EventBus)
        self.assertIsNotNone(ebuzz.Channel)
        self.assertIsNotNone(ebuzz.EventBusError)
        self.assertIsNotNone(ebuzz.SchedulerError)
        self.assertIsNotNone(ebuzz.ThreadingScheduler)
        self.assertIsNotNone(ebuzz.AsyncioScheduler)

    def test_lazy_exports_resolve_known_symbols(self) -> None:
        self.assertTrue(callable(ebuzz.load_config))
        self.assertTrue(callable(ebuzz.configure_logging))
        self.assertTrue(callable(ebuzz.create_bus))
        self.assertTrue(callable(ebuzz.get_default_bus))
        self.assertTrue(callable(ebuzz.set_default_bus))
        self.assertTrue(callable(ebuzz.reset_default_bus))

    def test_every_name_in_all_resolves(self) -> None:
        for name in ebuzz.__all__:
            self.assertIsNotNone(getattr(ebuzz, name), name)

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(ebuzz, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()
