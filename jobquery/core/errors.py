"""Error taxonomy for the query engine.

ValidationError and NotFoundError reject a mutation and leave session state
untouched. DataSourceError propagates out of execute() and is never cached.
"""


class SearchError(Exception):
    """Base class for every error raised by the query engine."""


class ValidationError(SearchError, ValueError):
    """A filter or sort value is malformed (e.g. a non-numeric salary)."""


class NotFoundError(SearchError, LookupError):
    """A saved search id does not exist."""


class DataSourceError(SearchError):
    """The candidate fetch failed or timed out."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class PersistenceError(SearchError):
    """A persistence backend could not read or write a record."""
