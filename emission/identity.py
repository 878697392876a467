"""
Identity registry for emitted struct records.

Assigns each type a canonical name, remembers which names already received a
full record (anchor) and hands out alias tokens for later references.
"""

import logging
from typing import Optional, Set

from core.naming import encode_anchor_name

logger = logging.getLogger(__name__)

RECORD_PREFIX = "s_"
UNKNOWN_PREFIX = "unknown_"
ANONYMOUS_PREFIX = "anon_"


class IdentityRegistry:
    """Run-scoped registry of defined canonical names.

    One instance belongs to one walker for the duration of a run. The
    ordinal counter is shared by ``unknown_<n>`` type names and
    ``anon_<n>`` member names; it is monotonic and never reuses a value.
    Not thread-safe.
    """

    def __init__(self):
        self._defined: Set[str] = set()
        self._counter = 0

    def next_ordinal(self) -> int:
        self._counter += 1
        return self._counter

    def canonical_name(self, name: Optional[str]) -> str:
        """Derive the canonical name of a type from its declared name.

        Args:
            name: Qualified declared name, or None for anonymous types.

        Returns:
            ``s_<encoded name>`` for named types, a fresh ``unknown_<n>``
            otherwise.
        """
        if name:
            return RECORD_PREFIX + encode_anchor_name(name)
        return f"{UNKNOWN_PREFIX}{self.next_ordinal()}"

    def anonymous_name(self) -> str:
        """Generate a slot name for an anonymous member."""
        return f"{ANONYMOUS_PREFIX}{self.next_ordinal()}"

    def try_define(self, canonical: str) -> bool:
        """Record ``canonical`` as defined.

        Returns:
            True on the first call for a name, False on every later call.
        """
        if canonical in self._defined:
            return False
        self._defined.add(canonical)
        logger.debug("Defined identity %s", canonical)
        return True

    def is_defined(self, canonical: str) -> bool:
        return canonical in self._defined

    def reference_token(self, canonical: str) -> Optional[str]:
        """Return the anchor for ``canonical`` if it was defined earlier.

        Forward references cannot be resolved; callers emit the bare name.
        """
        if canonical in self._defined:
            return canonical
        return None

    def __len__(self) -> int:
        return len(self._defined)
