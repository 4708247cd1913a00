"""Changes poller — owns the single outstanding ``_changes`` request.

Cancellation is cooperative: a cancelled poll is left to complete, but its
result (or failure) is discarded and ``poll_once`` returns ``None``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from couchfeed.changes.models import FeedResponse
from couchfeed.errors.couchfeed_errors import StateError

if TYPE_CHECKING:
    from couchfeed.http.executor import RequestExecutor
    from couchfeed.http.models import ClientContext
    from couchfeed.metrics.collector import NotifierMetrics

logger = logging.getLogger(__name__)


class ChangesPoller:
    """Issues one long-poll at a time through a request executor."""

    def __init__(
        self,
        executor: RequestExecutor,
        *,
        metrics: NotifierMetrics | None = None,
    ) -> None:
        self._executor = executor
        self._metrics = metrics
        self._in_flight = False
        self._cancelled = False

    @property
    def in_flight(self) -> bool:
        """Whether a poll is currently outstanding."""
        return self._in_flight

    def cancel(self) -> None:
        """Mark the outstanding poll, if any, as ignorable."""
        if self._in_flight:
            self._cancelled = True

    async def poll_once(self, url: str, *, context: ClientContext | None = None) -> FeedResponse | None:
        """Issue exactly one changes request.

        Args:
            url: Server-relative ``_changes`` URL including its query string.
            context: Client context to send the request with.

        Returns:
            The parsed feed response, or ``None`` if the poll was cancelled
            while outstanding.

        Raises:
            StateError: A previous poll has not resolved yet.
            CouchFeedError: The request failed and was not cancelled. Other
                exceptions from the executor propagate the same way.
        """
        if self._in_flight:
            raise StateError("a changes poll is already outstanding")
        self._in_flight = True
        self._cancelled = False
        try:
            if self._metrics:
                with self._metrics.track_poll():
                    response = await self._executor.execute("GET", url, context=context)
            else:
                response = await self._executor.execute("GET", url, context=context)
            feed = FeedResponse.from_dict(response.body)
        except Exception:
            if self._cancelled:
                self._record("discarded")
                logger.debug("Discarding failed poll after cancel: %s", url)
                return None
            self._record("error")
            raise
        finally:
            self._in_flight = False

        if self._cancelled:
            self._record("discarded")
            logger.debug("Discarding poll result after cancel: %s", url)
            return None
        self._record("ok")
        return feed

    def _record(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.poll_completed(outcome)
