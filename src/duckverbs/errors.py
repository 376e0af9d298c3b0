"""Error kinds raised by the fetch → load → query → materialize pipeline."""

from typing import Optional


class DuckverbsError(Exception):
    """Base class for all pipeline errors."""


class NetworkError(DuckverbsError):
    """Remote resource unreachable, timed out, or answered with a non-2xx status."""

    def __init__(
        self, message: str, url: str, status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FilesystemError(DuckverbsError):
    """A local destination could not be created or written."""


class FormatError(DuckverbsError):
    """A file is unreadable or does not match its declared format."""


class SchemaError(DuckverbsError, ValueError):
    """A query references a column that the current schema does not declare."""


class ResourceExhaustedError(DuckverbsError):
    """The engine ran out of memory while materializing a query.

    Recoverable: retry with a bounded ``preview`` instead of ``collect``.
    """


class QueryCancelledError(DuckverbsError):
    """A running query was interrupted through its cancellation token."""


class QueryError(DuckverbsError):
    """The engine rejected or failed to run a query."""
