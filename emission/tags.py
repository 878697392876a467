"""
Tag model: turns raw attributes into ordered lists of literal tag values.

Each ``[[compex::tag(...)]]`` attachment becomes one instance (a tuple of
strings and integers). Instances are never merged and keep attachment
order. An attachment without arguments yields an empty instance, which
counts for eligibility but is never written out.
"""

import logging
from typing import FrozenSet, Iterable, Tuple, Union

from emission.model import (
    LITERAL_INTEGER,
    LITERAL_STRING,
    Declaration,
    FieldDecl,
    RawAttribute,
)

logger = logging.getLogger(__name__)

TagValue = Union[str, int]
TagInstance = Tuple[TagValue, ...]
TagList = Tuple[TagInstance, ...]

DEFAULT_TAG_ATTRIBUTES: FrozenSet[str] = frozenset({"compex::tag", "compex_tag"})


def _attributes_of(declaration: Declaration) -> Tuple[RawAttribute, ...]:
    # Field tags live on the field's type at that use site.
    if isinstance(declaration, FieldDecl):
        return tuple(declaration.type.attributes)
    attributes = getattr(declaration, "attributes", None)
    if attributes is None:
        type_ref = getattr(declaration, "type", None)
        attributes = getattr(type_ref, "attributes", ())
    return tuple(attributes)


def tags_from_attributes(
    attributes: Iterable[RawAttribute],
    attribute_names: Iterable[str] = DEFAULT_TAG_ATTRIBUTES,
) -> TagList:
    """Collect tag instances from a raw attribute list.

    Args:
        attributes: Attributes in attachment order.
        attribute_names: Attribute names that denote a tag.

    Returns:
        One tuple per tag attachment, in attachment order. Arguments of an
        unrecognized literal kind are dropped with a warning.
    """
    names = frozenset(attribute_names)
    instances = []
    for attribute in attributes:
        if attribute.name not in names:
            continue
        values = []
        for literal in attribute.arguments:
            if literal.kind == LITERAL_STRING:
                values.append(str(literal.value))
            elif literal.kind == LITERAL_INTEGER:
                values.append(int(literal.value))
            else:
                logger.warning(
                    "Unknown literal kind for tag argument: %s (%r), ignoring",
                    literal.kind,
                    literal.value,
                )
        instances.append(tuple(values))
    return tuple(instances)


def extract_tags(
    declaration: Declaration,
    attribute_names: Iterable[str] = DEFAULT_TAG_ATTRIBUTES,
) -> TagList:
    """Return the tag list of any declaration kind."""
    return tags_from_attributes(_attributes_of(declaration), attribute_names)


def visible_instances(tags: TagList) -> TagList:
    """Drop empty instances; what remains is what gets written."""
    return tuple(instance for instance in tags if instance)
