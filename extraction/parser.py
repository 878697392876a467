"""
Tree-sitter parser initialization and file parsing utilities.

This module provides functions to initialize the C++ parser and parse source
files after tag macro expansion.
"""

import logging
from typing import Tuple

import tree_sitter_cpp as tscpp
from tree_sitter import Language, Node, Parser, Tree

from extraction.config import DEFAULT_TAG_MACROS
from extraction.preprocess import expand_tag_macros

# Configure logging
logger = logging.getLogger(__name__)

# Module-level language constant
CPP_LANGUAGE = Language(tscpp.language())


def create_parser() -> Parser:
    """Create and configure a tree-sitter parser for C++.

    Returns:
        A Parser instance configured with the C++ language.

    Example:
        >>> parser = create_parser()
        >>> tree = parser.parse(b"struct S { int x; };")
    """
    parser = Parser(CPP_LANGUAGE)
    logger.debug("Created tree-sitter C++ parser")
    return parser


def parse_bytes(
    source: bytes,
    tag_macros: Tuple[str, ...] = DEFAULT_TAG_MACROS,
) -> Tree:
    """Parse raw bytes of C++ source code.

    Tag macros are expanded into ``[[compex::tag(...)]]`` first; the tree's
    byte offsets therefore refer to the expanded text, while line numbers
    match the original.

    Args:
        source: UTF-8 encoded bytes of C++ source code.
        tag_macros: Macro names that spell a tag attachment.

    Returns:
        A Tree object representing the parsed AST.

    Raises:
        TypeError: If source is not bytes.
    """
    if not isinstance(source, bytes):
        raise TypeError(f"Source must be bytes, got {type(source).__name__}")

    text = source.decode("utf-8", errors="replace")
    expanded = expand_tag_macros(text, tag_macros)

    parser = create_parser()
    tree = parser.parse(expanded.encode("utf-8"))

    if tree.root_node.has_error:
        logger.warning("Parsed tree contains syntax errors")

    logger.debug(f"Parsed {len(source)} bytes of C++ code")
    return tree


def parse_file(
    file_path: str,
    tag_macros: Tuple[str, ...] = DEFAULT_TAG_MACROS,
) -> Tuple[Tree, bytes]:
    """Parse a C++ source file from disk.

    Args:
        file_path: Path to the .cpp, .cc, .h, or .hpp file.
        tag_macros: Macro names that spell a tag attachment.

    Returns:
        A tuple of (Tree, source_bytes) where source_bytes is the raw file
        content as read from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        IOError: If the file cannot be read.
    """
    try:
        with open(file_path, "rb") as f:
            source_bytes = f.read()
    except FileNotFoundError:
        logger.error(f"File not found: {file_path}")
        raise
    except IOError as e:
        logger.error(f"Error reading file {file_path}: {e}")
        raise

    tree = parse_bytes(source_bytes, tag_macros)

    if tree.root_node.has_error:
        logger.warning(f"File {file_path} contains syntax errors")

    logger.info(f"Successfully parsed file: {file_path}")
    return tree, source_bytes


def count_error_nodes(tree: Tree) -> int:
    """Count ERROR and MISSING nodes in a parsed tree."""
    count = 0
    stack = [tree.root_node]
    while stack:
        node: Node = stack.pop()
        if node.is_error or node.is_missing:
            count += 1
        if node.has_error:
            stack.extend(node.children)
    return count
