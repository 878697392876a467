"""
Tag macro expansion ahead of parsing.

tree-sitter sees source text without running the preprocessor, so a macro
spelling of a tag such as ``struct COMPEX_TAG("a") Foo`` would be misparsed.
This pass rewrites tag macro invocations into the attribute they stand for,
``[[compex::tag("a")]]``, and also expands zero-argument alias macros defined
in the same file whose body contains a tag macro::

    #define PROPERTY() COMPEX_TAG("property")

Preprocessor lines are left untouched and newlines are preserved, so line
numbers reported for declarations stay correct.
"""

import logging
import re
from typing import Dict, Iterable, Optional, Tuple

from extraction.config import DEFAULT_TAG_MACROS, TAG_ATTRIBUTE_SPELLING

logger = logging.getLogger(__name__)

_ALIAS_DEFINE_RE = re.compile(
    r"^\s*#\s*define\s+(?P<name>[A-Za-z_]\w*)(?P<params>\(\s*\))?\s+(?P<body>.+?)\s*$"
)


def _find_closing_paren(text: str, open_index: int) -> Optional[int]:
    """Return the index of the parenthesis closing ``text[open_index]``.

    String and character literals are skipped so that ``")"`` inside an
    argument does not end the invocation.
    """
    depth = 0
    index = open_index
    quote: Optional[str] = None
    while index < len(text):
        ch = text[index]
        if quote is not None:
            if ch == "\\":
                index += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("\"", "'"):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return None


def _invocation_re(names: Iterable[str]) -> Optional[re.Pattern]:
    names = sorted(set(names), key=len, reverse=True)
    if not names:
        return None
    alternatives = "|".join(re.escape(name) for name in names)
    return re.compile(rf"\b(?P<name>{alternatives})\s*\(")


def _expand_line(
    line: str,
    tag_re: Optional[re.Pattern],
    alias_re: Optional[re.Pattern],
    aliases: Dict[str, str],
) -> str:
    result = []
    position = 0
    while True:
        candidates = [
            match
            for match in (
                tag_re.search(line, position) if tag_re else None,
                alias_re.search(line, position) if alias_re else None,
            )
            if match is not None
        ]
        if not candidates:
            break
        match = min(candidates, key=lambda m: m.start())
        open_index = match.end() - 1
        close_index = _find_closing_paren(line, open_index)
        if close_index is None:
            logger.warning("Unterminated macro invocation: %s", line.strip())
            break

        result.append(line[position:match.start()])
        name = match.group("name")
        if name in aliases:
            result.append(aliases[name])
        else:
            arguments = line[open_index + 1:close_index]
            result.append(f"[[{TAG_ATTRIBUTE_SPELLING}({arguments})]]")
        position = close_index + 1

    result.append(line[position:])
    return "".join(result)


def _collect_aliases(lines: Iterable[str], tag_re: re.Pattern) -> Dict[str, str]:
    aliases: Dict[str, str] = {}
    for line in lines:
        match = _ALIAS_DEFINE_RE.match(line)
        if not match or match.group("params") is None:
            continue
        name = match.group("name")
        body = match.group("body")
        if not tag_re.search(body):
            continue
        aliases[name] = _expand_line(body, tag_re, None, {})
        logger.debug("Tag alias macro %s -> %s", name, aliases[name])
    return aliases


def expand_tag_macros(
    source: str,
    tag_macros: Tuple[str, ...] = DEFAULT_TAG_MACROS,
) -> str:
    """Rewrite tag macro invocations into ``[[compex::tag(...)]]``.

    Args:
        source: Source text.
        tag_macros: Names of macros that expand to a tag attribute.

    Returns:
        The rewritten text with the same number of lines.
    """
    tag_re = _invocation_re(tag_macros)
    if tag_re is None or not tag_re.search(source):
        return source

    lines = source.split("\n")
    aliases = _collect_aliases(lines, tag_re)
    alias_re = _invocation_re(aliases)

    expanded = []
    for line in lines:
        if line.lstrip().startswith("#"):
            expanded.append(line)
        else:
            expanded.append(_expand_line(line, tag_re, alias_re, aliases))
    return "\n".join(expanded)
