"""Change notifier — long-poll the ``_changes`` feed and publish events.

State machine::

    STOPPED --start--> RUNNING --pause--> PAUSED --restart--> RUNNING
                       RUNNING --stop---> STOPPED
                       PAUSED  --stop---> STOPPED

While RUNNING a background task issues one ``feed=normal`` poll at a time.
CouchDB holds each poll open for up to ``heartbeat`` ms and answers early when
something changes, so the next poll is sent as soon as the previous one has
been handled. A failed poll is published as an ``ERROR`` event and retried
with the same cursor.

``pause()`` and ``stop()`` do not abort the outstanding request. They mark it
as ignorable; when it resolves nothing is published and no further poll is
issued. A later ``restart()`` or ``start()`` waits for that request to settle
before polling again, so at most one request is ever outstanding.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlencode

from couchfeed.changes.channel import EventChannel
from couchfeed.changes.events import ChangeEvent, ChangeEventType
from couchfeed.changes.parameters import DEFAULT_SINCE, NotificationParameters
from couchfeed.changes.poller import ChangesPoller
from couchfeed.errors.couchfeed_errors import CouchFeedError, InvalidParameterError, StateError

if TYPE_CHECKING:
    from couchfeed.changes.models import FeedEntry, FeedResponse
    from couchfeed.http.executor import RequestExecutor
    from couchfeed.http.models import ClientContext
    from couchfeed.metrics.collector import NotifierMetrics

logger = logging.getLogger(__name__)


class NotifierState(enum.StrEnum):
    """Lifecycle state of a ``ChangeNotifier``."""

    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class ChangeNotifier:
    """Republishes a database's changes feed as ``ChangeEvent`` values.

    Usage::

        notifier = ChangeNotifier(executor)
        queue = notifier.channel.add_subscriber("ui")
        notifier.start("mydb", NotificationParameters(heartbeat=5000))
        event = await queue.get()
        notifier.pause()
        notifier.restart()
        notifier.stop()
        await notifier.wait_closed()
    """

    def __init__(
        self,
        executor: RequestExecutor,
        *,
        channel: EventChannel | None = None,
        metrics: NotifierMetrics | None = None,
        max_consecutive_failures: int | None = None,
    ) -> None:
        """Initialize a stopped notifier.

        Args:
            executor: Executor used for every changes request.
            channel: Event channel to publish on (a new one by default).
            metrics: Optional Prometheus metrics.
            max_consecutive_failures: Stop after this many failed polls in a
                row. ``None`` retries forever.
        """
        if max_consecutive_failures is not None and max_consecutive_failures < 1:
            msg = "max_consecutive_failures must be at least 1"
            raise InvalidParameterError(msg)
        self._poller = ChangesPoller(executor, metrics=metrics)
        self._channel = channel or EventChannel()
        self._metrics = metrics
        self._max_failures = max_consecutive_failures

        self._state = NotifierState.STOPPED
        self._parameters = NotificationParameters()
        self._database: str | None = None
        self._context: ClientContext | None = None
        self._since: Any = None
        self._known_revisions: dict[str, str] = {}
        self._failures = 0
        self._run_id = 0
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> NotifierState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is NotifierState.RUNNING

    @property
    def paused(self) -> bool:
        """Whether notifications are currently paused."""
        return self._state is NotifierState.PAUSED

    @property
    def database(self) -> str | None:
        """Database being watched; ``None`` while stopped."""
        return self._database

    @property
    def since(self) -> Any:
        """Current feed cursor; ``None`` while stopped."""
        return self._since

    @property
    def parameters(self) -> NotificationParameters:
        return self._parameters

    @property
    def channel(self) -> EventChannel:
        """The broadcast channel change events are published on."""
        return self._channel

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    @property
    def poll_in_flight(self) -> bool:
        return self._poller.in_flight

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        database: str,
        parameters: NotificationParameters | None = None,
        *,
        context: ClientContext | None = None,
    ) -> None:
        """Begin notifying on *database* from the start of its feed.

        Args:
            database: Database whose changes feed is polled.
            parameters: Feed parameters; the default set when omitted.
            context: Client context the requests are sent with.

        Raises:
            StateError: The notifier is not stopped.
            InvalidParameterError: No database name was given.
            RuntimeError: Called outside a running event loop; the notifier
                stays stopped.
        """
        if self._state is not NotifierState.STOPPED:
            msg = f"cannot start change notification while {self._state}, stop it first"
            raise StateError(msg)
        if not database:
            raise InvalidParameterError("start() expects a database name")
        loop = asyncio.get_running_loop()

        self._parameters = parameters if parameters is not None else NotificationParameters()
        self._database = database
        self._context = context
        self._since = DEFAULT_SINCE
        self._known_revisions = {}
        self._failures = 0
        self._state = NotifierState.RUNNING
        logger.info("Change notification started on %s", database)
        self._spawn(loop)

    def pause(self) -> None:
        """Suspend polling, keeping the cursor for ``restart()``.

        Raises:
            StateError: The notifier is not running.
        """
        if self._state is not NotifierState.RUNNING:
            msg = f"cannot pause change notification while {self._state}"
            raise StateError(msg)
        self._state = NotifierState.PAUSED
        self._poller.cancel()
        logger.info("Change notification paused on %s at since=%s", self._database, self._since)

    def restart(self) -> None:
        """Resume polling from the last known cursor.

        Raises:
            StateError: The notifier is not paused.
        """
        if self._state is not NotifierState.PAUSED:
            msg = f"cannot restart change notification while {self._state}"
            raise StateError(msg)
        loop = asyncio.get_running_loop()
        self._state = NotifierState.RUNNING
        logger.info("Change notification restarted on %s at since=%s", self._database, self._since)
        self._spawn(loop)

    def stop(self) -> None:
        """Stop polling and forget the database and cursor.

        Raises:
            StateError: The notifier is already stopped.
        """
        if self._state is NotifierState.STOPPED:
            raise StateError("change notification is not active")
        self._poller.cancel()
        logger.info("Change notification stopped on %s", self._database)
        self._state = NotifierState.STOPPED
        self._database = None
        self._context = None
        self._since = None
        self._known_revisions = {}

    def update_parameters(self, parameters: NotificationParameters) -> None:
        """Replace the active parameter set.

        Takes effect from the next poll; the cursor is left untouched.

        Raises:
            InvalidParameterError: *parameters* is ``None`` or the wrong type.
        """
        if parameters is None:
            raise InvalidParameterError("update_parameters() expects a parameter set")
        if not isinstance(parameters, NotificationParameters):
            msg = f"update_parameters() expects NotificationParameters, got {type(parameters).__name__}"
            raise InvalidParameterError(msg)
        self._parameters = parameters
        logger.debug("Change notification parameters updated: %s", parameters)

    async def wait_closed(self) -> None:
        """Wait until the background poll loop has finished."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait([task])

    # ------------------------------------------------------------------
    # Poll loop
    # ------------------------------------------------------------------

    def changes_url(self) -> str:
        """Server-relative URL of the next poll."""
        if self._database is None:
            raise StateError("change notification is not active")
        query = urlencode(self._parameters.to_query_parameters(since=self._since))
        return f"/{quote(self._database, safe='')}/_changes?{query}"

    def _spawn(self, loop: asyncio.AbstractEventLoop) -> None:
        self._run_id += 1
        previous = self._task
        self._task = loop.create_task(
            self._run(self._run_id, previous),
            name=f"couchfeed-changes-{self._database}",
        )

    def _is_current(self, run_id: int) -> bool:
        return self._state is NotifierState.RUNNING and run_id == self._run_id

    async def _run(self, run_id: int, previous: asyncio.Task[None] | None) -> None:
        if previous is not None and not previous.done():
            # A cancelled poll may still be outstanding
            await asyncio.wait([previous])

        while self._is_current(run_id):
            # Let pause/stop callers run between polls
            await asyncio.sleep(0)
            if not self._is_current(run_id):
                return
            url = self.changes_url()
            since = self._since
            try:
                feed = await self._poller.poll_once(url, context=self._context)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if not self._is_current(run_id):
                    return
                if not isinstance(exc, CouchFeedError):
                    logger.exception("Unexpected error polling %s", url)
                self._handle_failure(exc, since)
                continue

            if feed is None or not self._is_current(run_id):
                return
            self._handle_feed(feed)

    def _handle_failure(self, exc: Exception, since: Any) -> None:
        self._failures += 1
        logger.warning(
            "Changes poll on %s failed (%d in a row): %s",
            self._database,
            self._failures,
            exc,
        )
        self._publish(ChangeEvent.from_error(exc, sequence=since))

        if self._max_failures is not None and self._failures >= self._max_failures:
            logger.error(
                "Stopping change notification on %s after %d consecutive failures",
                self._database,
                self._failures,
            )
            if self._state is not NotifierState.STOPPED:
                self.stop()

    def _handle_feed(self, feed: FeedResponse) -> None:
        self._failures = 0
        events = [self._to_event(entry) for entry in feed.results]
        if feed.last_seq is not None:
            self._since = feed.last_seq

        # The cursor has moved past the whole batch; deliver all of it.
        for event in events:
            self._publish(event)
        if self._parameters.emit_last_sequence:
            self._publish(ChangeEvent.last_sequence(feed.last_seq))

    def _to_event(self, entry: FeedEntry) -> ChangeEvent:
        if entry.deleted:
            event_type = ChangeEventType.DELETE
            self._known_revisions.pop(entry.id, None)
        else:
            if entry.id in self._known_revisions:
                event_type = ChangeEventType.UPDATE
            else:
                event_type = ChangeEventType.CREATE
            self._known_revisions[entry.id] = entry.revision or ""

        return ChangeEvent(
            type=event_type,
            sequence=entry.seq,
            doc_id=entry.id,
            revision=entry.revision,
            document=entry.doc if self._parameters.include_docs else None,
        )

    def _publish(self, event: ChangeEvent) -> None:
        if self._metrics:
            self._metrics.event_published(event.type)
        self._channel.publish(event)
