"""Core shared contracts and utilities.

Run configuration lives in ``core.dump_config``; it depends on the emission
and extraction packages, so import it as ``core.dump_config``.
"""

from core.naming import (
    SCOPE_SEPARATOR,
    encode_anchor_name,
    normalize_cpp_entity_name,
    normalize_type_spelling,
    qualify_name,
)
from core.structured_logging import (
    DiagnosticCounter,
    configure_structured_logging,
    get_run_id,
    get_source,
    install_diagnostic_counter,
    set_run_id,
    source_scope,
)
from core.run_artifacts import build_run_report, write_run_report

__all__ = [
    "SCOPE_SEPARATOR",
    "encode_anchor_name",
    "normalize_cpp_entity_name",
    "normalize_type_spelling",
    "qualify_name",
    "DiagnosticCounter",
    "configure_structured_logging",
    "get_run_id",
    "get_source",
    "install_diagnostic_counter",
    "set_run_id",
    "source_scope",
    "build_run_report",
    "write_run_report",
]
