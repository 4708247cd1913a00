"""Changes feed data models — parsed ``_changes`` responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from couchfeed.errors.http_errors import CouchError


@dataclass(frozen=True)
class FeedEntry:
    """One row of the ``results`` list.

    Attributes:
        seq: Sequence at which the change was recorded.
        id: Document id.
        revisions: Revisions listed under ``changes`` (winning revision first).
        deleted: Whether the change is a deletion.
        doc: Document body, present only with ``include_docs``.
    """

    seq: Any
    id: str
    revisions: tuple[str, ...] = ()
    deleted: bool = False
    doc: dict[str, Any] | None = None

    @property
    def revision(self) -> str | None:
        return self.revisions[0] if self.revisions else None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeedEntry:
        """Create a FeedEntry from a ``results`` item."""
        return cls(
            seq=data.get("seq"),
            id=data.get("id", ""),
            revisions=tuple(c.get("rev", "") for c in data.get("changes", []) if isinstance(c, dict)),
            deleted=bool(data.get("deleted", False)),
            doc=data.get("doc"),
        )


@dataclass(frozen=True)
class FeedResponse:
    """A complete ``_changes`` response."""

    results: list[FeedEntry] = field(default_factory=list)
    last_seq: Any = None
    pending: int | None = None

    @classmethod
    def from_dict(cls, data: Any) -> FeedResponse:
        """Parse a ``{"results": [...], "last_seq": ...}`` body.

        Raises:
            CouchError: The body is not a changes feed response.
        """
        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            msg = f"Malformed changes feed response: {data!r}"
            raise CouchError(msg, status_code=502, error="bad_response", reason=msg, body=data)
        return cls(
            results=[FeedEntry.from_dict(item) for item in data["results"] if isinstance(item, dict)],
            last_seq=data.get("last_seq"),
            pending=data.get("pending"),
        )
