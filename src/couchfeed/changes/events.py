"""Change events published by the notifier.

- ``CREATE`` / ``UPDATE`` / ``DELETE`` — one per feed entry
- ``ERROR`` — a poll failed; ``error`` carries the exception
- ``LAST_SEQUENCE`` — end of a poll's batch, when requested
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class ChangeEventType(enum.StrEnum):
    """Kind of change observed on the feed."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ERROR = "error"
    LAST_SEQUENCE = "last_sequence"


@dataclass(frozen=True)
class ChangeEvent:
    """One materialized change notification. Never mutated after emission."""

    type: ChangeEventType
    sequence: Any = None
    doc_id: str | None = None
    revision: str | None = None
    document: dict[str, Any] | None = None
    error: Exception | None = None

    @property
    def is_error(self) -> bool:
        return self.type is ChangeEventType.ERROR

    @classmethod
    def from_error(cls, error: Exception, *, sequence: Any = None) -> ChangeEvent:
        """Wrap a failed poll; ``sequence`` is the cursor the poll was issued with."""
        return cls(type=ChangeEventType.ERROR, sequence=sequence, error=error)

    @classmethod
    def last_sequence(cls, sequence: Any) -> ChangeEvent:
        return cls(type=ChangeEventType.LAST_SEQUENCE, sequence=sequence)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict (the error is rendered as its message)."""
        return {
            "type": self.type.value,
            "sequence": self.sequence,
            "doc_id": self.doc_id,
            "revision": self.revision,
            "document": self.document,
            "error": str(self.error) if self.error is not None else None,
        }
