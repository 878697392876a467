"""Exception types raised by the emission core."""


class CompexError(Exception):
    """Base class for all compex failures."""


class SinkUnavailableError(CompexError):
    """Raised when the output destination cannot be acquired.

    This is the only fatal condition of a run; it is raised before any
    declaration is processed.
    """


class HostError(CompexError):
    """Raised by a host adapter when a declaration cannot be materialized.

    The walker recovers from it per top-level declaration: text already
    written stays in the document and the next declaration is processed.
    """
