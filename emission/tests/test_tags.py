"""Unit tests for tags.py and policy.py."""

import unittest

from emission.model import (
    FieldDecl,
    Literal,
    RawAttribute,
    RecordDecl,
    SourceLocation,
    TypeRef,
)
from emission.policy import should_emit
from emission.tags import extract_tags, tags_from_attributes, visible_instances

LOC = SourceLocation("widgets.h", 1)


def tag(*values):
    literals = tuple(
        Literal("integer", v) if isinstance(v, int) else Literal("string", v)
        for v in values
    )
    return RawAttribute("compex::tag", literals)


class TestTagsFromAttributes(unittest.TestCase):
    """Test conversion of raw attributes into tag instances."""

    def test_instances_keep_attachment_order(self):
        tags = tags_from_attributes([tag("a"), tag("b", 2)])
        self.assertEqual(tags, (("a",), ("b", 2)))

    def test_other_attributes_ignored(self):
        tags = tags_from_attributes([RawAttribute("nodiscard"), tag("x")])
        self.assertEqual(tags, (("x",),))

    def test_empty_invocation_counts(self):
        tags = tags_from_attributes([RawAttribute("compex::tag")])
        self.assertEqual(tags, ((),))
        self.assertEqual(visible_instances(tags), ())

    def test_unknown_literal_kind_dropped(self):
        attribute = RawAttribute(
            "compex::tag", (Literal("float", "1.5"), Literal("string", "ok"))
        )
        with self.assertLogs("emission.tags", level="WARNING"):
            tags = tags_from_attributes([attribute])
        self.assertEqual(tags, (("ok",),))

    def test_custom_attribute_names(self):
        attribute = RawAttribute("meta::reflect", (Literal("string", "r"),))
        self.assertEqual(tags_from_attributes([attribute]), ())
        self.assertEqual(tags_from_attributes([attribute], {"meta::reflect"}), (("r",),))


class TestExtractTags(unittest.TestCase):
    def test_field_tags_come_from_type_use(self):
        field = FieldDecl("x", TypeRef("int", 4, 4, (tag("f"),)), 0)
        self.assertEqual(extract_tags(field), (("f",),))

    def test_record_tags(self):
        record = RecordDecl("Widget", LOC, attributes=(tag(), tag("w")))
        self.assertEqual(extract_tags(record), ((), ("w",)))

    def test_extraction_is_repeatable(self):
        """Test extracting twice yields the same ordered tags, even from generators."""
        record = RecordDecl(
            "Widget", LOC, attributes=(a for a in [tag("w"), tag(1, "x"), tag()])
        )
        field = FieldDecl("x", TypeRef("int", 4, 4, (a for a in [tag("f"), tag("g")])), 0)
        for declaration, expected in (
            (record, (("w",), (1, "x"), ())),
            (field, (("f",), ("g",))),
        ):
            first = extract_tags(declaration)
            self.assertEqual(first, expected)
            self.assertEqual(extract_tags(declaration), first)


class TestShouldEmit(unittest.TestCase):
    def test_rule(self):
        record = RecordDecl("Widget", LOC)
        self.assertFalse(should_emit(record, (), dump_all=False))
        self.assertTrue(should_emit(record, (), dump_all=True))
        self.assertTrue(should_emit(record, ((),), dump_all=False))


if __name__ == "__main__":
    unittest.main()
