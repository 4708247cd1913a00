"""CouchFeedError — base exception class for all couchfeed errors."""

from __future__ import annotations


class CouchFeedError(Exception):
    """Base error for all couchfeed operations.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code associated with the failure.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "couchfeed-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class InvalidParameterError(CouchFeedError):
    """Caller supplied an invalid or missing argument."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400, code="invalid-parameter")


class StateError(CouchFeedError):
    """Operation is not valid in the notifier's current state."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=409, code="invalid-state")
