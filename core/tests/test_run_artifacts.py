"""Tests for run artifact helpers."""

import json
import tempfile
import unittest
from pathlib import Path

from core.run_artifacts import build_run_report, write_run_report


class TestRunArtifacts(unittest.TestCase):
    def test_build_run_report_defaults(self) -> None:
        report = build_run_report(status="failed")
        self.assertEqual(report["status"], "failed")
        for section in ("walk", "extraction", "diagnostics", "config", "sink"):
            self.assertEqual(report[section], {})

    def test_build_run_report_copies_sections(self) -> None:
        walk = {"records_emitted": 2}
        report = build_run_report(walk_stats=walk, diagnostics={"warnings": 1, "errors": 0})
        walk["records_emitted"] = 5
        self.assertEqual(report["walk"], {"records_emitted": 2})
        self.assertEqual(report["diagnostics"]["warnings"], 1)

    def test_write_run_report(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_run_report(
                report=build_run_report(walk_stats={"records_emitted": 1}, status="success"),
                run_id="run-123",
                output_dir=tmpdir,
            )
            self.assertTrue(Path(path).is_file())
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
            self.assertEqual(payload["run_id"], "run-123")
            self.assertEqual(payload["status"], "success")
            self.assertEqual(payload["walk"]["records_emitted"], 1)
            self.assertIn("timestamp_utc", payload)


if __name__ == "__main__":
    unittest.main()
