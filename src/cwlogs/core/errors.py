"""Error taxonomy shared by the core and the adapters."""

from __future__ import annotations


class CwError(Exception):
    """Base class for every error cwlogs reports to the user."""


class InvalidSourceReference(CwError, ValueError):
    """A `group[:streamPrefix]` reference could not be parsed."""


class InvalidTimeRange(CwError, ValueError):
    """Start/end/follow options that cannot be combined."""


class InvalidTimeExpression(CwError, ValueError):
    """A time option is neither a duration nor a date/time."""


class TransportError(CwError):
    """A Logs API call failed after the SDK gave up retrying."""


class ChannelClosed(CwError):
    """The event channel's consumer is gone; nobody will read further events."""


class SubmissionError(CwError):
    """Starting a query did not yield a query id."""


class PersistenceError(CwError):
    """Writing to or reading from the history store failed."""


class QueryFailed(CwError):
    """The remote side reported the query as failed."""

    def __init__(self, query_id: str) -> None:
        super().__init__(f"Query failed: {query_id}")
        self.query_id = query_id


class QueryTimeout(CwError):
    """The remote side reported the query as timed out."""

    def __init__(self, query_id: str) -> None:
        super().__init__(f"Query timed out: {query_id}")
        self.query_id = query_id


class QueryFileNotFound(CwError, FileNotFoundError):
    """The query file passed on the command line does not exist."""


class LogGroupNotFound(CwError):
    """No log group with exactly the requested name exists."""
