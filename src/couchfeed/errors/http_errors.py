"""Transport and CouchDB response errors."""

from __future__ import annotations

from typing import Any

from couchfeed.errors.couchfeed_errors import CouchFeedError


class TransportError(CouchFeedError):
    """Network failure, or the HTTP client could not complete the request."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="transport-error")


class CouchError(CouchFeedError):
    """CouchDB answered with a non-2xx status.

    ``error`` and ``reason`` mirror CouchDB's ``{"error": ..., "reason": ...}``
    body; ``body`` keeps whatever was returned verbatim.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error: str = "",
        reason: str = "",
        body: Any = None,
    ) -> None:
        super().__init__(message, status_code=status_code, code="couch-error")
        self.error = error
        self.reason = reason
        self.body = body
