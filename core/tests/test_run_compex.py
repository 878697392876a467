"""Tests for the compex command-line entry point."""

import json
import os
import tempfile
import unittest

import yaml

from run_compex import main, parse_args

HEADER = 'struct COMPEX_TAG("a") Point { int x; int y; };\n'


class TestRunCompex(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.tmp = self._tmpdir.name
        self.source = os.path.join(self.tmp, "point.h")
        with open(self.source, "w", encoding="utf-8") as f:
            f.write(HEADER)

    def test_parse_args_defaults(self) -> None:
        args = parse_args(["a.h"])
        self.assertEqual(args.sources, ["a.h"])
        self.assertEqual(args.output, [])
        self.assertFalse(args.dump_all)
        self.assertIsNone(args.strict_config)
        self.assertEqual(args.log_level, "WARNING")

    def test_dump_to_file_with_report(self) -> None:
        output = os.path.join(self.tmp, "types.yaml")
        report_dir = os.path.join(self.tmp, "reports")

        main([self.source, "-o", output, "--report-dir", report_dir, "--repo-root", self.tmp])

        with open(output, encoding="utf-8") as f:
            text = f.read()
        self.assertIn("Point: &s_Point !compex/struct", text)
        self.assertIn("$srcFile: point.h", text)

        reports = os.listdir(report_dir)
        self.assertEqual(len(reports), 1)
        with open(os.path.join(report_dir, reports[0]), encoding="utf-8") as f:
            report = json.load(f)
        self.assertEqual(report["status"], "success")
        self.assertEqual(report["walk"]["records_emitted"], 1)
        self.assertEqual(report["config"]["output"], output)
        self.assertFalse(report["sink"]["failed"])

    def test_output_given_twice_exits(self) -> None:
        first = os.path.join(self.tmp, "a.yaml")
        second = os.path.join(self.tmp, "b.yaml")
        with self.assertRaises(SystemExit) as ctx:
            main([self.source, "-o", first, "-o", second])
        self.assertEqual(ctx.exception.code, 1)
        self.assertFalse(os.path.exists(first))

    def test_unopenable_output_exits(self) -> None:
        output = os.path.join(self.tmp, "missing", "types.yaml")
        with self.assertRaises(SystemExit) as ctx:
            main([self.source, "-o", output])
        self.assertEqual(ctx.exception.code, 1)

    def test_config_file_dump_all(self) -> None:
        with open(self.source, "a", encoding="utf-8") as f:
            f.write("struct Plain { char c; };\n")
        config_path = os.path.join(self.tmp, "compex.yaml")
        output = os.path.join(self.tmp, "types.yaml")
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"dump_all": True, "output": output}, f)

        main([self.source, "--config", config_path])

        with open(output, encoding="utf-8") as f:
            text = f.read()
        self.assertIn("Plain: &s_Plain", text)


if __name__ == "__main__":
    unittest.main()
