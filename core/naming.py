"""Naming contract shared by the host adapter and the emission core."""

from __future__ import annotations

import re
from typing import Iterable

SCOPE_SEPARATOR = "::"

_WHITESPACE_RE = re.compile(r"\s+")
_SCOPE_SEPARATOR_RE = re.compile(r"\s*::\s*")
_DESTRUCTOR_SPACING_RE = re.compile(r"::\s*~")
_ANCHOR_UNSAFE_RE = re.compile(r"[^0-9A-Za-z_]")


def normalize_cpp_entity_name(entity_name: str) -> str:
    """Normalize C++ entity names into a canonical form.

    The goal is deterministic identity when trivial whitespace variations
    occur between a declaration and a later reference to it.

    Args:
        entity_name: Raw entity name from parser output.

    Returns:
        Canonicalized entity name.
    """
    normalized = entity_name.strip()
    normalized = _SCOPE_SEPARATOR_RE.sub("::", normalized)
    normalized = _DESTRUCTOR_SPACING_RE.sub("::~", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    return normalized.strip()


def normalize_type_spelling(type_text: str) -> str:
    """Collapse whitespace in a type spelling, e.g. ``const  Foo  &``."""
    return _WHITESPACE_RE.sub(" ", type_text).strip()


def qualify_name(scope: Iterable[str], name: str) -> str:
    """Join a scope stack and a name with ``::``."""
    return normalize_cpp_entity_name(SCOPE_SEPARATOR.join([*scope, name]))


def _escape_char(match: re.Match[str]) -> str:
    code = ord(match.group(0))
    if code <= 0xFF:
        return f"-{code:02x}"
    if code <= 0xFFFF:
        return f"-u{code:04x}"
    return f"-U{code:08x}"


def encode_anchor_name(name: str) -> str:
    """Encode a qualified name into a YAML-anchor-safe token.

    ``[0-9A-Za-z_]`` pass through; any other character becomes a
    fixed-width ``-hh``/``-uhhhh``/``-Uhhhhhhhh`` escape. Since ``-`` only
    ever starts an escape the encoding is injective.

    Example:
        >>> encode_anchor_name("ns::Foo")
        'ns-3a-3aFoo'
    """
    return _ANCHOR_UNSAFE_RE.sub(_escape_char, normalize_cpp_entity_name(name))
