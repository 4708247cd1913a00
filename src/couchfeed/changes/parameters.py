"""Change notification parameters — the ``_changes`` query for one poll.

A ``NotificationParameters`` value is immutable; the notifier swaps the whole
set on ``update_parameters`` rather than mutating it while a poll is in flight.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

from couchfeed.errors.couchfeed_errors import InvalidParameterError

# Only the long-poll ("normal") feed is supported.
FEED_NORMAL = "normal"

DEFAULT_HEARTBEAT = 1000  # ms
DEFAULT_SINCE = "0"


class FeedStyle(enum.StrEnum):
    """Which revisions the feed reports per document."""

    MAIN_ONLY = "main_only"
    ALL_DOCS = "all_docs"


@dataclass(frozen=True)
class NotificationParameters:
    """Validated parameters for the changes feed.

    Attributes:
        heartbeat: Milliseconds CouchDB may hold a poll open (must be > 0).
        style: ``main_only`` (winning revision) or ``all_docs`` (all leaves).
        filter: Optional filter function name (``ddoc/name``).
        include_docs: Ask CouchDB to embed the document body in each change.
        descending: Return changes in descending sequence order.
        since: Default cursor for ``to_query_parameters``. A notifier always
            starts its own cursor at ``"0"``.
        emit_last_sequence: Publish a ``LAST_SEQUENCE`` event after every poll.
            Client-side only, never sent to CouchDB.
    """

    heartbeat: int = DEFAULT_HEARTBEAT
    style: FeedStyle = FeedStyle.MAIN_ONLY
    filter: str | None = None
    include_docs: bool = False
    descending: bool = False
    since: str | int = DEFAULT_SINCE
    emit_last_sequence: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.heartbeat, bool) or not isinstance(self.heartbeat, int):
            msg = f"heartbeat must be an integer number of milliseconds, got {self.heartbeat!r}"
            raise InvalidParameterError(msg)
        if self.heartbeat <= 0:
            msg = f"heartbeat must be positive, got {self.heartbeat}"
            raise InvalidParameterError(msg)
        try:
            object.__setattr__(self, "style", FeedStyle(self.style))
        except ValueError as exc:
            raise InvalidParameterError(f"unknown feed style {self.style!r}") from exc
        if self.since is None or self.since == "":
            raise InvalidParameterError("since must be a feed cursor, use '0' to start over")

    @classmethod
    def create(
        cls,
        heartbeat: int,
        style: FeedStyle | str = FeedStyle.MAIN_ONLY,
        filter: str | None = None,  # noqa: A002
        include_docs: bool = False,
        descending: bool = False,
    ) -> NotificationParameters:
        """Build a parameter set, validating ``heartbeat > 0``."""
        return cls(
            heartbeat=heartbeat,
            style=style,  # type: ignore[arg-type]
            filter=filter,
            include_docs=include_docs,
            descending=descending,
        )

    @property
    def feed(self) -> str:
        return FEED_NORMAL

    def with_since(self, since: str | int) -> NotificationParameters:
        """Return a copy positioned at another cursor."""
        return replace(self, since=since)

    def to_query_parameters(self, since: str | int | None = None) -> dict[str, str]:
        """Build the ``_changes`` query string mapping.

        Args:
            since: Cursor to use instead of the stored ``since``.

        Returns:
            ``feed``, ``heartbeat``, ``style`` and ``since`` always; ``filter``,
            ``include_docs`` and ``descending`` only when set.
        """
        params = {
            "feed": FEED_NORMAL,
            "heartbeat": str(self.heartbeat),
            "style": self.style.value,
            "since": str(self.since if since is None else since),
        }
        if self.filter:
            params["filter"] = self.filter
        if self.include_docs:
            params["include_docs"] = "true"
        if self.descending:
            params["descending"] = "true"
        return params
