"""
Integration tests for extractor.py

Tests the high-level dump orchestration over files and directories.
"""

import io
import os
import tempfile
import unittest
from pathlib import Path

from emission.document import load_document
from extraction.extractor import (
    ExtractionStats,
    discover_cpp_files,
    dump_sources,
    iter_file_groups,
)
from extraction.layout import TypeTable, get_data_model

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def write_file(directory, name, content):
    path = os.path.join(directory, name)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


class TestExtractionStats(unittest.TestCase):
    """Test ExtractionStats class."""

    def test_to_dict(self):
        """Test converting stats to dictionary."""
        stats = ExtractionStats()
        stats.files_processed = 5
        stats.declarations_extracted = 20

        result = stats.to_dict()
        self.assertEqual(result["files_processed"], 5)
        self.assertEqual(result["declarations_extracted"], 20)
        self.assertEqual(result["files_failed"], 0)

    def test_str_representation(self):
        """Test string representation."""
        stats = ExtractionStats()
        stats.files_processed = 3
        self.assertIn("processed=3", str(stats))


class TestDumpFixture(unittest.TestCase):
    """Test dumping the shapes.h fixture end to end."""

    def setUp(self):
        self.out = io.StringIO()
        self.walk_stats, self.stats = dump_sources(
            [str(FIXTURES_DIR / "shapes.h")],
            self.out,
            repo_root=str(FIXTURES_DIR),
        )
        self.doc = load_document(self.out.getvalue())

    def test_only_tagged_declarations(self):
        self.assertEqual(sorted(self.doc), ["geo::Circle", "geo::Shape", "run"])
        self.assertEqual(self.walk_stats.records_emitted, 2)
        self.assertEqual(self.walk_stats.functions_emitted, 1)
        self.assertEqual(self.stats.files_processed, 1)
        self.assertEqual(self.stats.files_failed, 0)

    def test_record_layout_and_tags(self):
        shape = self.doc["geo::Shape"]
        self.assertEqual(shape["$srcFile"], "shapes.h")
        self.assertEqual(shape["$srcLine"], 8)
        self.assertEqual(shape["$sizeof"], 16)
        self.assertEqual(shape["tags"], [["shape"]])
        self.assertTrue(shape["_vptr.Shape$"]["artificial"])
        self.assertEqual(shape["id$"]["offset"], 64)
        self.assertTrue(shape["method_0$"]["destructor"])

    def test_alias_macro_and_base_reference(self):
        circle = self.doc["geo::Circle"]
        self.assertEqual(circle["tags"], [["serialized"]])
        self.assertIn("ref: *s_geo-3a-3aShape", self.out.getvalue())
        self.assertIs(circle["base_0$"]["ref"], self.doc["geo::Shape"])
        self.assertEqual(circle["radius$"]["offset"], 128)

    def test_free_function(self):
        run = self.doc["run"]
        self.assertEqual(run.kind, "function")
        self.assertEqual(run["tags"], [["entry"]])
        self.assertEqual([arg["type"] for arg in run["args"]], ["int", "char **"])


class TestDumpSources(unittest.TestCase):
    """Test run-level behavior over several files."""

    def test_types_shared_across_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = write_file(tmp, "base.h", "struct Base { int b; };\n")
            derived = write_file(
                tmp, "derived.h", "struct COMPEX_TAG() Derived : Base { int d; };\n"
            )
            out = io.StringIO()
            dump_sources([base, derived], out)

        doc = load_document(out.getvalue())
        self.assertEqual(list(doc), ["Derived"])
        self.assertEqual(doc["Derived"]["d$"]["offset"], 32)
        self.assertNotIn("ref", doc["Derived"]["base_0$"])

    def test_same_type_in_two_files_dumped_once(self):
        with tempfile.TemporaryDirectory() as tmp:
            source = "struct COMPEX_TAG() Point { int x; };\n"
            write_file(tmp, "a.h", source)
            write_file(tmp, "b.h", source)
            out = io.StringIO()
            walk_stats, _ = dump_sources([tmp], out)

        self.assertEqual(walk_stats.records_emitted, 1)
        self.assertEqual(walk_stats.duplicates, 1)
        self.assertEqual(out.getvalue().count("&s_Point"), 1)

    def test_dump_all(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_file(tmp, "plain.h", "struct Plain { char c; };\nvoid f();\n")
            out = io.StringIO()
            dump_sources([path], out, dump_all=True)

        self.assertEqual(sorted(load_document(out.getvalue())), ["Plain", "f"])

    def test_broken_file_counts_parse_errors(self):
        out = io.StringIO()
        _, stats = dump_sources([str(FIXTURES_DIR / "broken_syntax.cpp")], out)
        self.assertEqual(stats.files_processed, 1)
        self.assertGreater(stats.parse_errors, 0)

    def test_bad_files_skipped(self):
        out = io.StringIO()
        with self.assertLogs("extraction.extractor", level="ERROR"):
            _, stats = dump_sources(
                [str(FIXTURES_DIR / "missing.h"), str(FIXTURES_DIR / "notes.txt")],
                out,
            )
        self.assertEqual(stats.files_failed, 2)
        self.assertEqual(out.getvalue(), "")

    def test_fail_fast(self):
        with self.assertRaises(FileNotFoundError):
            dump_sources(
                [str(FIXTURES_DIR / "missing.h")], io.StringIO(), continue_on_error=False
            )

    def test_unknown_data_model(self):
        with self.assertRaises(ValueError):
            dump_sources([str(FIXTURES_DIR / "shapes.h")], io.StringIO(), data_model="lp128")


class TestIterFileGroups(unittest.TestCase):
    def test_groups_in_source_order(self):
        types = TypeTable(get_data_model("lp64"))
        groups = list(iter_file_groups(str(FIXTURES_DIR / "shapes.h"), types))
        names = [declaration.name for group in groups for declaration in group]
        self.assertEqual(names, ["geo::Shape", "geo::Circle", "geo::Untagged", "run"])
        self.assertIn("geo::Circle", types)


class TestDiscoverCppFiles(unittest.TestCase):
    """Test C++ file discovery."""

    def test_discovery_skips_build_and_hidden_directories(self):
        with tempfile.TemporaryDirectory() as tmp:
            expected = [
                write_file(tmp, "src/a.cpp", ""),
                write_file(tmp, "src/b.h", ""),
            ]
            write_file(tmp, "build/generated.cpp", "")
            write_file(tmp, ".git/hook.h", "")
            write_file(tmp, "README.md", "")

            found = discover_cpp_files(tmp)

        self.assertEqual(found, sorted(os.path.abspath(p) for p in expected))


if __name__ == "__main__":
    unittest.main()
