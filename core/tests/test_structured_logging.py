"""Tests for structured logging helpers."""

import logging
import unittest

from core.structured_logging import (
    DiagnosticCounter,
    _RunContextFilter,
    get_run_id,
    get_source,
    set_run_id,
    source_scope,
)


class TestStructuredLogging(unittest.TestCase):
    def test_set_run_id(self) -> None:
        self.assertEqual(set_run_id("run-1"), "run-1")
        self.assertEqual(get_run_id(), "run-1")
        generated = set_run_id()
        self.assertNotEqual(generated, "run-1")
        self.assertEqual(get_run_id(), generated)

    def test_source_scope_restores(self) -> None:
        before = get_source()
        with source_scope("a.h"):
            self.assertEqual(get_source(), "a.h")
            with source_scope("b.h"):
                self.assertEqual(get_source(), "b.h")
            self.assertEqual(get_source(), "a.h")
        self.assertEqual(get_source(), before)

    def test_filter_injects_context(self) -> None:
        record = logging.LogRecord("compex", logging.INFO, __file__, 1, "msg", None, None)
        set_run_id("run-2")
        with source_scope("shapes.h"):
            self.assertTrue(_RunContextFilter().filter(record))
        self.assertEqual(record.run_id, "run-2")
        self.assertEqual(record.source, "shapes.h")

    def test_diagnostic_counter(self) -> None:
        logger = logging.getLogger("compex.tests.counter")
        logger.propagate = False
        logger.setLevel(logging.DEBUG)
        counter = DiagnosticCounter()
        logger.addHandler(counter)
        try:
            logger.info("ignored")
            logger.warning("first")
            logger.warning("second")
            logger.error("broken")
            logger.critical("worse")
        finally:
            logger.removeHandler(counter)
        self.assertEqual(counter.to_dict(), {"warnings": 2, "errors": 2})


if __name__ == "__main__":
    unittest.main()
