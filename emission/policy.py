"""Eligibility rule for top-level declarations."""

from typing import Sequence

from emission.model import Declaration


def should_emit(
    declaration: Declaration,
    tags: Sequence[Sequence[object]],
    dump_all: bool,
) -> bool:
    """Decide whether a top-level declaration is dumped.

    A tag invocation without arguments still counts: ``tags`` holds one
    empty instance for it. Members of an eligible declaration are always
    dumped and never consult this rule.
    """
    return dump_all or len(tags) > 0
