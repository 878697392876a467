"""Structured logging helpers with run correlation context.

Diagnostics are the side channel of a dump: they go to stderr so that a
document written to stdout stays clean.
"""

from __future__ import annotations

import contextvars
import logging
import sys
import uuid
from collections import Counter
from contextlib import contextmanager
from typing import Iterator

_RUN_ID_VAR: contextvars.ContextVar[str] = contextvars.ContextVar(
    "run_id", default="-"
)
_SOURCE_VAR: contextvars.ContextVar[str] = contextvars.ContextVar(
    "source", default="-"
)


class _RunContextFilter(logging.Filter):
    """Inject run correlation fields into all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _RUN_ID_VAR.get("-")
        record.source = _SOURCE_VAR.get("-")
        return True


class DiagnosticCounter(logging.Handler):
    """Counts warnings and errors emitted during a run."""

    def __init__(self, level: int = logging.WARNING):
        super().__init__(level)
        self.counts: Counter[str] = Counter()

    def emit(self, record: logging.LogRecord) -> None:
        self.counts[record.levelname] += 1

    @property
    def warnings(self) -> int:
        return self.counts["WARNING"]

    @property
    def errors(self) -> int:
        return self.counts["ERROR"] + self.counts["CRITICAL"]

    def to_dict(self) -> dict[str, int]:
        return {"warnings": self.warnings, "errors": self.errors}


def _ensure_filter_on_root_handlers() -> None:
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        has_filter = any(isinstance(f, _RunContextFilter) for f in handler.filters)
        if not has_filter:
            handler.addFilter(_RunContextFilter())


def configure_structured_logging(level: int = logging.INFO) -> None:
    """Configure root logging on stderr with run/source context."""
    fmt = (
        "%(asctime)s | %(levelname)s | run_id=%(run_id)s | source=%(source)s | "
        "%(name)s | %(message)s"
    )
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(level=level, format=fmt, stream=sys.stderr)
    else:
        root_logger.setLevel(level)
        formatter = logging.Formatter(fmt)
        for handler in root_logger.handlers:
            handler.setFormatter(formatter)
    _ensure_filter_on_root_handlers()


def install_diagnostic_counter() -> DiagnosticCounter:
    """Attach a fresh DiagnosticCounter to the root logger."""
    counter = DiagnosticCounter()
    logging.getLogger().addHandler(counter)
    return counter


def set_run_id(run_id: str | None = None) -> str:
    """Set or generate run correlation ID."""
    value = run_id or str(uuid.uuid4())
    _RUN_ID_VAR.set(value)
    return value


def get_run_id() -> str:
    """Get current run correlation ID."""
    return _RUN_ID_VAR.get("-")


def get_source() -> str:
    """Get the source file currently being processed."""
    return _SOURCE_VAR.get("-")


@contextmanager
def source_scope(source: str) -> Iterator[None]:
    """Temporarily set the source file context for emitted logs."""
    token = _SOURCE_VAR.set(source)
    try:
        yield
    finally:
        _SOURCE_VAR.reset(token)
