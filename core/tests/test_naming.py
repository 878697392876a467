"""Tests for the naming contract."""

import unittest

from core.naming import (
    encode_anchor_name,
    normalize_cpp_entity_name,
    normalize_type_spelling,
    qualify_name,
)


class TestNaming(unittest.TestCase):
    def test_normalize_entity_name(self) -> None:
        self.assertEqual(normalize_cpp_entity_name("  geo :: Shape "), "geo::Shape")
        self.assertEqual(normalize_cpp_entity_name("geo::Shape:: ~Shape"), "geo::Shape::~Shape")

    def test_normalize_type_spelling(self) -> None:
        self.assertEqual(normalize_type_spelling(" const  char  * "), "const char *")

    def test_qualify_name(self) -> None:
        self.assertEqual(qualify_name(["geo", "detail"], "Vec"), "geo::detail::Vec")
        self.assertEqual(qualify_name([], "Vec"), "Vec")

    def test_encode_anchor_name(self) -> None:
        self.assertEqual(encode_anchor_name("Shape"), "Shape")
        self.assertEqual(encode_anchor_name("geo::Shape"), "geo-3a-3aShape")
        self.assertEqual(encode_anchor_name("Box<int>"), "Box-3cint-3e")
        self.assertEqual(encode_anchor_name("café"), "caf-e9")
        self.assertEqual(encode_anchor_name("Ω"), "-u03a9")
        self.assertEqual(encode_anchor_name("\U0001F600"), "-U0001f600")

    def test_encoding_is_injective_for_dashes(self) -> None:
        self.assertNotEqual(encode_anchor_name("a-3a"), encode_anchor_name("a:"))


if __name__ == "__main__":
    unittest.main()
