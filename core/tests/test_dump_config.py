"""Tests for dump configuration loading and merging."""

import os
import tempfile
import unittest
from unittest import mock

from core.dump_config import (
    DUMP_ALL_ENV,
    ConfigValidationError,
    DuplicateOutputDestinationError,
    build_dump_config,
    load_config_file,
    resolve_output_destination,
)


class TestDumpConfig(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        patcher = mock.patch.dict(os.environ, {}, clear=False)
        patcher.start()
        self.addCleanup(patcher.stop)
        os.environ.pop(DUMP_ALL_ENV, None)

    def _write_config(self, content: str) -> str:
        path = os.path.join(self._tmpdir.name, "compex.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    def test_load_non_strict_missing_returns_empty(self) -> None:
        self.assertEqual(load_config_file("/definitely/missing.yaml", strict=False), {})

    def test_load_strict_missing_raises(self) -> None:
        with self.assertRaises(ConfigValidationError):
            load_config_file("/definitely/missing.yaml", strict=True)

    def test_load_empty_file(self) -> None:
        self.assertEqual(load_config_file(self._write_config("")), {})

    def test_load_invalid_yaml(self) -> None:
        path = self._write_config("data_model: [lp64\n")
        self.assertEqual(load_config_file(path, strict=False), {})
        with self.assertRaises(ConfigValidationError):
            load_config_file(path, strict=True)

    def test_unknown_and_mistyped_keys(self) -> None:
        path = self._write_config("dump_all: yes\ncolor: blue\ndata_model: 64\n")
        values = load_config_file(path, strict=False)
        self.assertEqual(values, {"dump_all": True})
        with self.assertRaises(ConfigValidationError):
            load_config_file(path, strict=True)

    def test_resolve_output_destination(self) -> None:
        self.assertIsNone(resolve_output_destination())
        self.assertEqual(resolve_output_destination(["out.yaml"]), "out.yaml")
        self.assertEqual(resolve_output_destination([], "file.yaml"), "file.yaml")
        with self.assertRaises(DuplicateOutputDestinationError):
            resolve_output_destination(["a.yaml", "b.yaml"])
        with self.assertRaises(DuplicateOutputDestinationError):
            resolve_output_destination(["a.yaml"], "file.yaml")

    def test_defaults(self) -> None:
        config = build_dump_config(strict=False)
        self.assertIsNone(config.output)
        self.assertFalse(config.dump_all)
        self.assertEqual(config.data_model, "lp64")
        self.assertEqual(config.tag_macros, ("COMPEX_TAG",))
        self.assertIn("compex::tag", config.tag_attributes)
        self.assertTrue(config.continue_on_error)

    def test_file_then_cli_precedence(self) -> None:
        path = self._write_config(
            "data_model: ilp32\n"
            "tag_macros: [REFLECT]\n"
            "tag_attributes: [meta::reflect]\n"
            "repo_root: /src\n"
        )
        config = build_dump_config(
            config_path=path,
            data_model="LLP64",
            tag_macros=["EXTRA", "REFLECT"],
            fail_fast=True,
            strict=True,
        )
        self.assertEqual(config.data_model, "llp64")
        self.assertEqual(config.tag_macros, ("REFLECT", "EXTRA"))
        self.assertEqual(config.tag_attributes, ("meta::reflect",))
        self.assertEqual(config.repo_root, "/src")
        self.assertFalse(config.continue_on_error)
        self.assertEqual(config.to_dict()["tag_macros"], ["REFLECT", "EXTRA"])

    def test_output_from_file_and_cli_rejected(self) -> None:
        path = self._write_config("output: types.yaml\n")
        self.assertEqual(build_dump_config(config_path=path).output, "types.yaml")
        with self.assertRaises(DuplicateOutputDestinationError):
            build_dump_config(cli_outputs=["other.yaml"], config_path=path)

    def test_unknown_data_model(self) -> None:
        with self.assertRaises(ConfigValidationError):
            build_dump_config(data_model="lp128", strict=False)

    def test_dump_all_from_environment(self) -> None:
        os.environ[DUMP_ALL_ENV] = "1"
        self.assertTrue(build_dump_config(strict=False).dump_all)


if __name__ == "__main__":
    unittest.main()
