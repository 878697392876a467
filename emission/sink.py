"""Output sink: wraps the already-open destination stream."""

import logging
import sys
from typing import Optional, TextIO

from emission.errors import SinkUnavailableError

logger = logging.getLogger(__name__)

STDOUT_DESTINATION = "-"


class OutputSink:
    """Pass-through writer that turns I/O failures into diagnostics.

    After the first failed write or flush the sink logs an error and stops
    writing; the run itself continues and ``failed`` reports the outcome.
    """

    def __init__(self, stream: TextIO, name: str = "<stream>", owned: bool = False):
        self._stream = stream
        self.name = name
        self._owned = owned
        self.failed = False
        self.bytes_written = 0

    def write(self, text: str) -> None:
        if self.failed:
            return
        try:
            self._stream.write(text)
        except OSError as e:
            self._fail("write", e)
            return
        self.bytes_written += len(text.encode("utf-8"))

    def flush(self) -> None:
        if self.failed:
            return
        try:
            self._stream.flush()
        except OSError as e:
            self._fail("flush", e)

    def close(self) -> None:
        self.flush()
        if self._owned:
            try:
                self._stream.close()
            except OSError as e:
                self._fail("close", e)

    def _fail(self, operation: str, error: OSError) -> None:
        self.failed = True
        logger.error("Failed to %s output %s: %s", operation, self.name, error)

    def __enter__(self) -> "OutputSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_sink(destination: Optional[str] = None) -> OutputSink:
    """Acquire the output destination.

    Args:
        destination: File path, ``"-"`` or None for standard output.

    Returns:
        An OutputSink; it owns (and closes) the file for named paths.

    Raises:
        SinkUnavailableError: If the file cannot be opened.
    """
    if destination is None or destination == STDOUT_DESTINATION:
        return OutputSink(sys.stdout, name="<stdout>")

    try:
        stream = open(destination, "w", encoding="utf-8")
    except OSError as e:
        raise SinkUnavailableError(
            f"Could not open output file: {destination}: {e}"
        ) from e
    logger.info("Writing type information to %s", destination)
    return OutputSink(stream, name=destination, owned=True)
