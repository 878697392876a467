"""
Tree-sitter host adapter

Parses C++ sources with tree-sitter, computes record layouts for a target
data model and materializes tagged declarations for the emission core.
"""

from extraction.parser import create_parser, parse_file, parse_bytes, count_error_nodes
from extraction.preprocess import expand_tag_macros
from extraction.layout import DATA_MODELS, DataModel, Layout, TypeTable, get_data_model
from extraction.traversal import extract_declarations_from_tree, traverse_declarations
from extraction.extractor import (
    dump_sources,
    iter_file_groups,
    discover_cpp_files,
    ExtractionStats,
)

__all__ = [
    # Layout
    "DATA_MODELS",
    "DataModel",
    "Layout",
    "TypeTable",
    "get_data_model",
    "ExtractionStats",
    # Low-level parsing
    "create_parser",
    "parse_file",
    "parse_bytes",
    "count_error_nodes",
    "expand_tag_macros",
    # Mid-level materialization
    "extract_declarations_from_tree",
    "traverse_declarations",
    # High-level orchestration
    "dump_sources",
    "iter_file_groups",
    "discover_cpp_files",
]
