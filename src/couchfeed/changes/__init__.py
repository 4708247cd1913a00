"""Change notification — long-poll the ``_changes`` feed and fan out events.

Provides:
- ``NotificationParameters`` — validated feed query parameters
- ``ChangesPoller`` — single outstanding poll with cooperative cancel
- ``ChangeNotifier`` — start/pause/restart/stop state machine
- ``EventChannel`` — multi-subscriber broadcast of ``ChangeEvent`` values
"""

from __future__ import annotations

from couchfeed.changes.channel import EventChannel
from couchfeed.changes.events import ChangeEvent, ChangeEventType
from couchfeed.changes.models import FeedEntry, FeedResponse
from couchfeed.changes.notifier import ChangeNotifier, NotifierState
from couchfeed.changes.parameters import FeedStyle, NotificationParameters
from couchfeed.changes.poller import ChangesPoller

__all__ = [
    "ChangeEvent",
    "ChangeEventType",
    "ChangeNotifier",
    "ChangesPoller",
    "EventChannel",
    "FeedEntry",
    "FeedResponse",
    "FeedStyle",
    "NotificationParameters",
    "NotifierState",
]
