"""
Indentation-scoped writer for the structured document.

The emitter owns the nesting depth. Every nested block is entered through a
context manager that restores the depth captured on entry, so depth is
balanced on every exit path, including exceptions raised by the caller.
"""

import json
import re
from contextlib import contextmanager
from typing import Iterator, Optional, Set, Union

INDENT = "  "
TAG_PREFIX = "!compex/"

Scalar = Union[str, int, bool, None]

_PLAIN_START_RE = re.compile(r"[A-Za-z_$~/]")
_PLAIN_UNSAFE_CHARS = frozenset("#'\"`\\\t\r\n")
_RESERVED_WORDS = frozenset(
    {"true", "false", "yes", "no", "on", "off", "y", "n", "null", "~"}
)
_ANCHOR_RE = re.compile(r"^[0-9A-Za-z_-]+$")
_TAG_RE = re.compile(r"^[0-9A-Za-z_]+$")
# Characters the YAML reader rejects, plus the line breaks it folds inside
# quoted scalars (NEL, LS, PS).
_YAML_ESCAPE_RE = re.compile(
    "[^\x09\x0a\x0d\x20-\x7e\xa0-\u2027\u202a-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)


def format_scalar(value: Scalar) -> str:
    """Render a scalar so that it reads back as the same value.

    Strings are written plain when that is unambiguous and double-quoted
    (JSON escaping, a subset of YAML double-quoted style) otherwise.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    text = str(value)
    if _is_plain_safe(text):
        return text
    return _YAML_ESCAPE_RE.sub(_escape_char, json.dumps(text, ensure_ascii=False))


def _escape_char(match: "re.Match[str]") -> str:
    return f"\\u{ord(match.group()):04x}"


def _is_plain_safe(text: str) -> bool:
    if not text or not _PLAIN_START_RE.match(text[0]):
        return False
    if text.lower() in _RESERVED_WORDS:
        return False
    if text != text.strip() or text.endswith(":"):
        return False
    if ": " in text or " #" in text:
        return False
    if any(ch in _PLAIN_UNSAFE_CHARS for ch in text):
        return False
    return text.isprintable()


class StructuredEmitter:
    """Line writer producing two-space indented YAML blocks."""

    def __init__(self, sink):
        self._sink = sink
        self._depth = 0
        self.lines_written = 0

    @property
    def depth(self) -> int:
        return self._depth

    def _line(self, text: str) -> None:
        self._sink.write(f"{INDENT * self._depth}{text}\n")
        self.lines_written += 1

    @contextmanager
    def _nested(self) -> Iterator[None]:
        entry_depth = self._depth
        self._depth = entry_depth + 1
        try:
            yield
        finally:
            self._depth = entry_depth

    @staticmethod
    def _properties(tag: Optional[str], anchor: Optional[str]) -> str:
        parts = []
        if anchor is not None:
            if not _ANCHOR_RE.match(anchor):
                raise ValueError(f"Invalid anchor name: {anchor!r}")
            parts.append(f"&{anchor}")
        if tag is not None:
            if not _TAG_RE.match(tag):
                raise ValueError(f"Invalid tag name: {tag!r}")
            parts.append(f"{TAG_PREFIX}{tag}")
        return " ".join(parts)

    def scalar(self, key: str, value: Scalar) -> None:
        """Write ``key: value``."""
        self._line(f"{format_scalar(key)}: {format_scalar(value)}")

    def flag(self, key: str, enabled: bool) -> None:
        """Write ``key: true`` when ``enabled``; write nothing otherwise."""
        if enabled:
            self.scalar(key, True)

    def alias(self, key: str, anchor: str) -> None:
        """Write ``key: *anchor``."""
        if not _ANCHOR_RE.match(anchor):
            raise ValueError(f"Invalid anchor name: {anchor!r}")
        self._line(f"{format_scalar(key)}: *{anchor}")

    def empty_sequence(self, key: str) -> None:
        self._line(f"{format_scalar(key)}: []")

    @contextmanager
    def mapping(
        self,
        key: str,
        tag: Optional[str] = None,
        anchor: Optional[str] = None,
    ) -> Iterator[None]:
        """Open ``key: [&anchor] [!compex/tag]`` and nest its body."""
        properties = self._properties(tag, anchor)
        header = f"{format_scalar(key)}:"
        if properties:
            header = f"{header} {properties}"
        self._line(header)
        with self._nested():
            yield

    @contextmanager
    def sequence(self, key: str) -> Iterator[None]:
        """Open ``key:`` whose body is a list of items."""
        self._line(f"{format_scalar(key)}:")
        with self._nested():
            yield

    @contextmanager
    def item(self, tag: Optional[str] = None) -> Iterator[None]:
        """Open a ``-`` list entry whose body is nested one level deeper."""
        properties = self._properties(tag, None)
        self._line(f"- {properties}" if properties else "-")
        with self._nested():
            yield

    def value_item(self, value: Scalar) -> None:
        """Write a ``- value`` list entry."""
        self._line(f"- {format_scalar(value)}")


class KeyScope:
    """Hands out unique mapping keys within one block."""

    def __init__(self):
        self._used: Set[str] = set()

    def claim(self, key: str) -> str:
        """Return ``key``, or a suffixed variant if it is already taken.

        ``foo`` becomes ``foo$1``; a key already ending in ``$`` such as
        ``base_0$`` becomes ``base_0$1``.
        """
        candidate = key
        ordinal = 0
        while candidate in self._used:
            ordinal += 1
            separator = "" if key.endswith("$") else "$"
            candidate = f"{key}{separator}{ordinal}"
        self._used.add(candidate)
        return candidate

    def __contains__(self, key: str) -> bool:
        return key in self._used
