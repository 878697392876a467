"""
High-level orchestrator for tagged-type dumps.

This module provides the main entry points for dumping single files or
entire directory trees through one walker. All files of a run share one
TypeTable and one identity registry, like a unity build: a type defined in
an earlier file can be used as a base or member type in a later one, and a
type is dumped only once however many files define it.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from core.structured_logging import source_scope
from emission.errors import HostError
from emission.tags import DEFAULT_TAG_ATTRIBUTES
from emission.walker import DeclarationWalker, WalkStats
from extraction.config import (
    CPP_EXTENSIONS,
    DEFAULT_CONTINUE_ON_ERROR,
    DEFAULT_DATA_MODEL,
    DEFAULT_TAG_MACROS,
    SKIPPED_DIRECTORIES,
)
from extraction.layout import TypeTable, get_data_model
from extraction.parser import count_error_nodes, parse_file
from extraction.traversal import DeclarationGroup, extract_declarations_from_tree

logger = logging.getLogger(__name__)


@dataclass
class FileDumpDiagnostics:
    """Per-file dump diagnostics."""

    declarations: int
    parse_error_count: int


class ExtractionStats:
    """Statistics for a dump operation."""

    def __init__(self):
        self.files_processed = 0
        self.files_failed = 0
        self.declarations_extracted = 0
        self.parse_errors = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert stats to dictionary."""
        return {
            "files_processed": self.files_processed,
            "files_failed": self.files_failed,
            "declarations_extracted": self.declarations_extracted,
            "parse_errors": self.parse_errors,
        }

    def __str__(self) -> str:
        """String representation of stats."""
        return (
            f"ExtractionStats(processed={self.files_processed}, "
            f"failed={self.files_failed}, declarations={self.declarations_extracted}, "
            f"parse_errors={self.parse_errors})"
        )


def _display_path(file_path: str, repo_root: Optional[str]) -> str:
    """Path written as ``$srcFile``: as given, or relative to ``repo_root``."""
    if repo_root is None:
        return file_path
    resolved_repo_root = os.path.abspath(repo_root)
    try:
        return os.path.relpath(os.path.abspath(file_path), resolved_repo_root)
    except ValueError:
        logger.warning(
            "Cannot compute relative path for %s from %s. Using path as given.",
            file_path,
            resolved_repo_root,
        )
        return file_path


def _check_source_file(file_path: str) -> None:
    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    ext = os.path.splitext(file_path)[1]
    if ext not in CPP_EXTENSIONS:
        raise ValueError(
            f"File {file_path} is not a C++ source file. "
            f"Expected one of: {sorted(CPP_EXTENSIONS)}"
        )


def _parse_source(file_path: str, tag_macros: Tuple[str, ...]):
    _check_source_file(file_path)
    tree, _ = parse_file(file_path, tag_macros)
    parse_error_count = count_error_nodes(tree)
    if parse_error_count:
        logger.warning(
            "File %s contains syntax errors (%d error nodes)",
            file_path,
            parse_error_count,
        )
    return tree, parse_error_count


def iter_file_groups(
    file_path: str,
    types: TypeTable,
    repo_root: Optional[str] = None,
    tag_macros: Tuple[str, ...] = DEFAULT_TAG_MACROS,
) -> Iterator[DeclarationGroup]:
    """Parse one file and yield its declaration groups.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a C++ source file.
        HostError: If a declaration cannot be materialized.
    """
    tree, _ = _parse_source(file_path, tag_macros)
    yield from extract_declarations_from_tree(tree, _display_path(file_path, repo_root), types)


def _dump_file(
    file_path: str,
    walker: DeclarationWalker,
    types: TypeTable,
    repo_root: Optional[str],
    tag_macros: Tuple[str, ...],
) -> FileDumpDiagnostics:
    display_path = _display_path(file_path, repo_root)
    logger.info("Dumping tagged declarations from %s", display_path)
    tree, parse_error_count = _parse_source(file_path, tag_macros)

    declarations = 0
    for group in extract_declarations_from_tree(tree, display_path, types):
        walker.handle_group(group)
        declarations += len(group)

    return FileDumpDiagnostics(declarations=declarations, parse_error_count=parse_error_count)


def discover_cpp_files(directory: str) -> List[str]:
    """Recursively discover all C++ source files in a directory.

    Args:
        directory: Root directory to search.

    Returns:
        Sorted list of absolute paths to C++ files.

    Example:
        >>> files = discover_cpp_files("/path/to/repo")
        >>> len(files)
        42
    """
    cpp_files = []
    directory = os.path.abspath(directory)

    logger.info(f"Discovering C++ files in {directory}")

    for root, dirs, files in os.walk(directory):
        # Skip hidden directories and common build/cache directories
        dirs[:] = [d for d in dirs if not d.startswith('.') and d not in SKIPPED_DIRECTORIES]

        for file in files:
            ext = os.path.splitext(file)[1]
            if ext in CPP_EXTENSIONS:
                cpp_files.append(os.path.join(root, file))

    logger.info(f"Found {len(cpp_files)} C++ files")
    return sorted(cpp_files)


def expand_sources(sources: Iterable[str]) -> List[str]:
    """Replace directories by the C++ files below them, keeping order."""
    files: List[str] = []
    for source in sources:
        if os.path.isdir(source):
            files.extend(discover_cpp_files(source))
        else:
            files.append(source)
    return files


def dump_sources(
    sources: Sequence[str],
    sink,
    dump_all: bool = False,
    data_model: str = DEFAULT_DATA_MODEL,
    tag_macros: Tuple[str, ...] = DEFAULT_TAG_MACROS,
    tag_attributes: Iterable[str] = DEFAULT_TAG_ATTRIBUTES,
    repo_root: Optional[str] = None,
    continue_on_error: bool = DEFAULT_CONTINUE_ON_ERROR,
) -> Tuple[WalkStats, ExtractionStats]:
    """Dump every tagged declaration of ``sources`` into ``sink``.

    Args:
        sources: Files and directories, processed in the given order.
        sink: Output sink shared by the whole run.
        dump_all: Dump every declaration, tagged or not.
        data_model: Name of the target data model for layouts.
        tag_macros: Macro names that spell a tag in source.
        tag_attributes: Attribute names that denote a tag.
        repo_root: Base directory for ``$srcFile`` paths.
        continue_on_error: If True, continue with the next file when one
            fails. If False, re-raise the first failure.

    Returns:
        A tuple of (walk_stats, extraction_stats).

    Raises:
        ValueError: If the data model is unknown.

    Example:
        >>> with open_sink("types.yaml") as sink:
        ...     walk_stats, stats = dump_sources(["src/"], sink)
    """
    types = TypeTable(get_data_model(data_model))
    walker = DeclarationWalker(sink, dump_all=dump_all, tag_attributes=tag_attributes)
    stats = ExtractionStats()

    files = expand_sources(sources)
    if not files:
        logger.warning("No C++ files found in %s", ", ".join(sources))

    for file_path in files:
        with source_scope(file_path):
            try:
                diagnostics = _dump_file(file_path, walker, types, repo_root, tag_macros)
                stats.files_processed += 1
                stats.declarations_extracted += diagnostics.declarations
                stats.parse_errors += diagnostics.parse_error_count

            except FileNotFoundError as e:
                logger.error(f"File not found: {e}")
                stats.files_failed += 1
                if not continue_on_error:
                    raise

            except ValueError as e:
                logger.error(f"Invalid file: {e}")
                stats.files_failed += 1
                if not continue_on_error:
                    raise

            except HostError as e:
                logger.error(f"Cannot read declarations of {file_path}: {e}")
                stats.files_failed += 1
                if not continue_on_error:
                    raise

            except OSError as e:
                logger.error(f"Error reading {file_path}: {e}")
                stats.files_failed += 1
                if not continue_on_error:
                    raise

    walker.finish()
    logger.info(f"Dump complete: {stats}, {walker.stats}")
    return walker.stats, stats
