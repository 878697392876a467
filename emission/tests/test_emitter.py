"""Unit tests for emitter.py: scalar rendering, nesting depth and key scopes."""

import io
import unittest

import yaml

from emission.emitter import KeyScope, StructuredEmitter, format_scalar


class TestFormatScalar(unittest.TestCase):
    """Test that scalars read back as the value that was written."""

    def test_non_string_scalars(self):
        self.assertEqual(format_scalar(None), "null")
        self.assertEqual(format_scalar(True), "true")
        self.assertEqual(format_scalar(False), "false")
        self.assertEqual(format_scalar(-1), "-1")

    def test_plain_strings(self):
        for text in ("int", "std::string", "void **", "$srcFile", "~Widget", "/src/a.h"):
            with self.subTest(text=text):
                self.assertEqual(format_scalar(text), text)

    def test_ambiguous_strings_are_quoted(self):
        self.assertEqual(format_scalar(""), '""')
        self.assertEqual(format_scalar("true"), '"true"')
        self.assertEqual(format_scalar("null"), '"null"')
        self.assertEqual(format_scalar("42"), '"42"')
        self.assertEqual(format_scalar("a: b"), '"a: b"')
        self.assertEqual(format_scalar("(anonymous struct)"), '"(anonymous struct)"')
        self.assertEqual(format_scalar('say "hi"'), '"say \\"hi\\""')

    def test_reader_unsafe_characters_are_escaped(self):
        """Test DEL, C1 controls and Unicode line breaks survive a YAML round trip."""
        for text in ("a\x7fb", "x\x85y", "p\u2028q", "r\u2029s", "\x9bz", "\ufffe"):
            with self.subTest(text=repr(text)):
                rendered = format_scalar(text)
                self.assertTrue(rendered.isascii())
                self.assertEqual(yaml.safe_load(f"k: {rendered}\n"), {"k": text})
        self.assertEqual(format_scalar("\u00e9\u00a0"), '"\u00e9\u00a0"')


class TestStructuredEmitter(unittest.TestCase):
    """Test block structure and depth restoration."""

    def setUp(self):
        self.out = io.StringIO()
        self.emitter = StructuredEmitter(self.out)

    def test_mapping_header_with_anchor_and_tag(self):
        with self.emitter.mapping("Widget", tag="struct", anchor="s_Widget"):
            self.emitter.scalar("$sizeof", 8)
        self.assertEqual(
            self.out.getvalue(),
            "Widget: &s_Widget !compex/struct\n  $sizeof: 8\n",
        )

    def test_flag_writes_only_when_enabled(self):
        self.emitter.flag("const", False)
        self.emitter.flag("static", True)
        self.assertEqual(self.out.getvalue(), "static: true\n")

    def test_sequence_items(self):
        with self.emitter.sequence("tags"):
            with self.emitter.item():
                self.emitter.value_item("a")
                self.emitter.value_item(1)
        self.assertEqual(self.out.getvalue(), "tags:\n  -\n    - a\n    - 1\n")

    def test_empty_sequence(self):
        self.emitter.empty_sequence("args")
        self.assertEqual(self.out.getvalue(), "args: []\n")

    def test_depth_restored_after_exception(self):
        with self.assertRaises(RuntimeError):
            with self.emitter.mapping("outer"):
                with self.emitter.mapping("inner"):
                    self.assertEqual(self.emitter.depth, 2)
                    raise RuntimeError("boom")
        self.assertEqual(self.emitter.depth, 0)

    def test_invalid_anchor_rejected(self):
        with self.assertRaises(ValueError):
            with self.emitter.mapping("Widget", anchor="s_ns::Widget"):
                pass
        with self.assertRaises(ValueError):
            self.emitter.alias("ref", "bad anchor")
        self.assertEqual(self.emitter.depth, 0)


class TestKeyScope(unittest.TestCase):
    """Test unique key assignment within one block."""

    def test_plain_key_collision_gets_suffix(self):
        scope = KeyScope()
        self.assertEqual(scope.claim("foo"), "foo")
        self.assertEqual(scope.claim("foo"), "foo$1")
        self.assertEqual(scope.claim("foo"), "foo$2")

    def test_dollar_key_collision_appends_ordinal(self):
        scope = KeyScope()
        self.assertEqual(scope.claim("x$"), "x$")
        self.assertEqual(scope.claim("x$"), "x$1")
        self.assertIn("x$1", scope)


if __name__ == "__main__":
    unittest.main()
