#!/usr/bin/env python3
"""
Command-line entry point: dump tagged C++ types as a YAML document.

Parses the given C++ sources with tree-sitter, keeps the records and
functions carrying a ``[[compex::tag(...)]]`` attribute (or every one with
``--dump-all``) and writes their layout and signatures to stdout or a file.
Diagnostics go to stderr.

Usage:
    python run_compex.py src/widgets.h
    python run_compex.py src/ -o types.yaml --data-model llp64
    python run_compex.py a.h b.h --dump-all --report-dir output/run_reports
"""

import argparse
import logging
import sys
from typing import List, Optional

from core.dump_config import ConfigValidationError, DumpConfig, build_dump_config
from core.run_artifacts import build_run_report, write_run_report
from core.structured_logging import (
    configure_structured_logging,
    install_diagnostic_counter,
    set_run_id,
)
from emission.errors import CompexError, SinkUnavailableError
from emission.sink import open_sink
from extraction.extractor import dump_sources
from extraction.layout import DATA_MODELS

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="compex",
        description="Dump tagged C++ types and functions as YAML",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  compex src/widgets.h\n"
            "  compex src/ -o types.yaml --data-model llp64\n"
        ),
    )

    parser.add_argument(
        "sources",
        nargs="+",
        metavar="SOURCE",
        help="C++ source files or directories, processed as one translation unit.",
    )
    parser.add_argument(
        "-o", "--output",
        action="append",
        default=[],
        help="Output file, '-' for stdout. May be given only once. Default: stdout",
    )
    parser.add_argument(
        "--dump-all",
        action="store_true",
        default=False,
        help="Dump every record and function, tagged or not (also COMPEX_DUMP_ALL=1).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML file with default settings.",
    )
    parser.add_argument(
        "--data-model",
        choices=sorted(DATA_MODELS),
        default=None,
        help="Target data model for sizes and offsets. Default: lp64",
    )
    parser.add_argument(
        "--tag-macro",
        action="append",
        default=[],
        help="Additional macro name that expands to a tag attribute.",
    )
    parser.add_argument(
        "--repo-root",
        default=None,
        help="Write source paths relative to this directory.",
    )
    parser.add_argument(
        "--report-dir",
        default=None,
        help="Write a JSON run report into this directory.",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=False,
        help="Stop at the first file that cannot be processed.",
    )
    parser.add_argument(
        "--strict-config",
        action="store_true",
        default=None,
        help="Fail on invalid config files (also COMPEX_STRICT_CONFIG=1).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic verbosity on stderr. Default: WARNING",
    )

    return parser.parse_args(argv)


def run_dump(sources: List[str], config: DumpConfig) -> dict:
    """Dump ``sources`` according to ``config``.

    Returns:
        Partial run report with walk, extraction and sink sections.

    Raises:
        SinkUnavailableError: If the output cannot be opened.
    """
    with open_sink(config.output) as sink:
        walk_stats, extraction_stats = dump_sources(
            sources,
            sink,
            dump_all=config.dump_all,
            data_model=config.data_model,
            tag_macros=config.tag_macros,
            tag_attributes=config.tag_attributes,
            repo_root=config.repo_root,
            continue_on_error=config.continue_on_error,
        )
    return {
        "walk": walk_stats.to_dict(),
        "extraction": extraction_stats.to_dict(),
        "sink": {
            "name": sink.name,
            "bytes_written": sink.bytes_written,
            "failed": sink.failed,
        },
    }


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the dump."""
    args = parse_args(argv)
    configure_structured_logging(level=getattr(logging, args.log_level))
    counter = install_diagnostic_counter()
    run_id = set_run_id()

    logger.info("compex run %s over %d source(s)", run_id, len(args.sources))

    report = build_run_report(status="failed")
    exit_code = 0
    try:
        config = build_dump_config(
            cli_outputs=args.output,
            dump_all=args.dump_all,
            config_path=args.config,
            data_model=args.data_model,
            tag_macros=args.tag_macro,
            repo_root=args.repo_root,
            fail_fast=args.fail_fast,
            strict=args.strict_config,
        )
        report["config"] = config.to_dict()

        result = run_dump(args.sources, config)
        report.update(result)
        if result["sink"]["failed"]:
            logger.error("Output %s was not written completely", result["sink"]["name"])
            exit_code = 1
        else:
            report["status"] = "success"

    except ConfigValidationError as e:
        logger.error(f"Configuration error: {e}")
        report["error"] = str(e)
        exit_code = 1
    except SinkUnavailableError as e:
        logger.error(f"Output error: {e}")
        report["error"] = str(e)
        exit_code = 1
    except (CompexError, OSError, ValueError) as e:
        logger.error(f"Dump failed: {e}")
        report["error"] = str(e)
        exit_code = 1

    report["diagnostics"] = counter.to_dict()
    logging.getLogger().removeHandler(counter)
    if args.report_dir:
        report_path = write_run_report(report, run_id, output_dir=args.report_dir)
        logger.info("Run report written: %s", report_path)

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
