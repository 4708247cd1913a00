"""CouchClient — typed async access to CouchDB's document API.

Every operation conditions its URL, builds headers and body, and awaits one
``RequestExecutor.execute`` call. The outcome is returned to the caller as that
call's own ``CouchResponse``; failures are raised as ``CouchError`` or
``TransportError``. Missing required arguments raise ``InvalidParameterError``
before any request is made.

The client also owns the single ``ChangeNotifier`` for its connection.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from couchfeed.changes.notifier import ChangeNotifier, NotifierState
from couchfeed.client.urls import condition_url, root_url, set_url_parameter
from couchfeed.errors.couchfeed_errors import InvalidParameterError
from couchfeed.http.executor import RequestExecutor
from couchfeed.http.models import ClientContext

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    import httpx

    from couchfeed.changes.channel import EventChannel
    from couchfeed.changes.parameters import NotificationParameters
    from couchfeed.config.settings import AppConfig
    from couchfeed.http.models import CouchResponse
    from couchfeed.metrics.collector import NotifierMetrics

logger = logging.getLogger(__name__)

SESSION = "/_session"
STATS = "/_stats"
ALL_DBS = "/_all_dbs"
ALL_DOCS = "/_all_docs"
BULK_DOCS = "/_bulk_docs"
UUIDS = "/_uuids"

_JSON_HEADERS = {"Content-Type": "application/json"}


def _doc_path(doc_id: str) -> str:
    return quote(doc_id, safe="/")


class CouchClient:
    """Async CouchDB client.

    Usage::

        client = CouchClient(ClientContext(host="localhost", db="mydb"))
        await client.connect()
        try:
            resp = await client.get_document("some-id")
            client.start_change_notification()
            client.change_notification.add_listener(print)
            ...
        finally:
            await client.close()
    """

    def __init__(
        self,
        context: ClientContext | None = None,
        *,
        executor: RequestExecutor | None = None,
        connect_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics: NotifierMetrics | None = None,
        max_consecutive_failures: int | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            context: Connection details; ``localhost:5984`` when omitted.
            executor: Pre-built executor (one is created by default).
            connect_timeout: Connect timeout for the default executor.
            transport: ``httpx`` transport for the default executor.
            metrics: Optional notifier metrics.
            max_consecutive_failures: Passed to the change notifier.
        """
        self._context = context or ClientContext()
        self._executor = executor or RequestExecutor(
            self._context,
            connect_timeout=connect_timeout,
            transport=transport,
        )
        self._notifier = ChangeNotifier(
            self._executor,
            metrics=metrics,
            max_consecutive_failures=max_consecutive_failures,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics: NotifierMetrics | None = None,
    ) -> CouchClient:
        """Build a client from application settings."""
        return cls(
            config.couch.to_context(),
            connect_timeout=config.couch.connect_timeout,
            transport=transport,
            metrics=metrics,
            max_consecutive_failures=config.changes.max_consecutive_failures,
        )

    async def connect(self) -> None:
        """Open the underlying HTTP client."""
        await self._executor.connect()

    async def close(self) -> None:
        """Stop change notification and close the HTTP client."""
        if self._notifier.state is not NotifierState.STOPPED:
            self._notifier.stop()
        await self._notifier.wait_closed()
        await self._executor.close()

    @property
    def is_connected(self) -> bool:
        return self._executor.is_connected

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    @property
    def context(self) -> ClientContext:
        """The connection context every request is sent with."""
        return self._context

    @property
    def db(self) -> str | None:
        """Currently selected database."""
        return self._context.db

    @db.setter
    def db(self, name: str | None) -> None:
        self._context = self._context.with_db(name)

    @property
    def host(self) -> str:
        return self._context.host

    @property
    def port(self) -> int:
        return self._context.port

    @property
    def scheme(self) -> str:
        return self._context.scheme

    def login(self, user: str, password: str) -> None:
        """Use HTTP basic authentication for all later requests."""
        if not user or password is None:
            raise InvalidParameterError("login() expects a user name and password")
        self._context = self._context.with_credentials(user, password)
        logger.info("Basic authentication enabled for user %s", user)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> CouchResponse:
        return await self._executor.execute(
            method,
            url,
            body=body,
            headers=headers,
            context=self._context,
        )

    # ------------------------------------------------------------------
    # Raw and conditioned requests
    # ------------------------------------------------------------------

    async def http_request(self, url: str, *, method: str = "GET") -> CouchResponse:
        """Send *url* as given; no database prefix is added.

        Useful for views, design documents and other endpoints the client
        has no dedicated method for.
        """
        return await self._request(method, url)

    async def get(self, url: str) -> CouchResponse:
        """GET *url* relative to the current database."""
        return await self._request("GET", condition_url(self.db, url))

    async def head(self, url: str) -> CouchResponse:
        """HEAD *url* relative to the current database."""
        return await self._request("HEAD", condition_url(self.db, url))

    async def post(self, url: str, data: Any, headers: Mapping[str, str] | None = None) -> CouchResponse:
        """POST *data* to *url* relative to the current database."""
        return await self._request("POST", condition_url(self.db, url), body=data, headers=headers)

    async def put(self, url: str, data: Any, headers: Mapping[str, str] | None = None) -> CouchResponse:
        """PUT *data* to *url* relative to the current database."""
        return await self._request("PUT", condition_url(self.db, url), body=data, headers=headers)

    async def delete(self, url: str) -> CouchResponse:
        """DELETE *url* relative to the current database."""
        return await self._request("DELETE", condition_url(self.db, url))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def get_document(
        self,
        doc_id: str,
        rev: str | None = None,
        *,
        with_attachments: bool = False,
    ) -> CouchResponse:
        """Fetch a document, optionally at a given revision.

        ``with_attachments`` inlines attachment bodies, which can make the
        response large.
        """
        if not doc_id:
            raise InvalidParameterError("get_document() must have a document id")
        url = _doc_path(doc_id)
        if rev is not None:
            url = set_url_parameter(url, "rev", rev)
        if with_attachments:
            url = set_url_parameter(url, "attachments", "true")
        return await self._request("GET", condition_url(self.db, url))

    async def delete_document(self, doc_id: str, rev: str) -> CouchResponse:
        """Delete a document revision."""
        if not doc_id or not rev:
            raise InvalidParameterError("delete_document() expects a document id and a revision")
        url = set_url_parameter(_doc_path(doc_id), "rev", rev)
        return await self._request("DELETE", condition_url(self.db, url))

    async def put_document(
        self,
        doc_id: str,
        document: Mapping[str, Any] | str,
        rev: str | None = None,
    ) -> CouchResponse:
        """Create or update a document under *doc_id*.

        *document* may be a mapping or an already serialized JSON string.
        """
        if not doc_id or document is None:
            raise InvalidParameterError("put_document() expects a document id and a document body")
        url = _doc_path(doc_id)
        if isinstance(document, str):
            body: Any = document
            if rev is not None:
                url = set_url_parameter(url, "rev", rev)
        else:
            body = dict(document)
            if rev is not None:
                body["_rev"] = rev
        return await self._request("PUT", condition_url(self.db, url), body=body, headers=_JSON_HEADERS)

    async def post_document(
        self,
        document: Mapping[str, Any] | str,
        *,
        path: str | None = None,
    ) -> CouchResponse:
        """POST a new document; CouchDB assigns the id."""
        if document is None:
            raise InvalidParameterError("post_document() expects a document body")
        url = f"/{path}" if path else ""
        body = document if isinstance(document, str) else dict(document)
        return await self._request("POST", condition_url(self.db, url), body=body, headers=_JSON_HEADERS)

    async def copy_document(
        self,
        source_id: str,
        destination_id: str,
        rev: str | None = None,
    ) -> CouchResponse:
        """Copy a document with CouchDB's ``COPY`` method.

        *rev* is the destination revision to overwrite, if it exists.
        """
        if not source_id:
            raise InvalidParameterError("copy_document() expects a source id")
        if not destination_id:
            raise InvalidParameterError("copy_document() expects a destination id")
        destination = destination_id if rev is None else f"{destination_id}?rev={rev}"
        return await self._request(
            "COPY",
            condition_url(self.db, _doc_path(source_id)),
            headers={"Destination": destination},
        )

    async def get_all_docs(
        self,
        *,
        include_docs: bool = False,
        limit: int | None = None,
        start_key: str | None = None,
        end_key: str | None = None,
        keys: Sequence[str] | None = None,
        descending: bool = False,
    ) -> CouchResponse:
        """Query ``_all_docs`` for the current database."""
        if limit is not None and limit < 0:
            raise InvalidParameterError("get_all_docs() must have a positive limit")
        url = ALL_DOCS
        if include_docs:
            url = set_url_parameter(url, "include_docs", "true")
        if limit is not None:
            url = set_url_parameter(url, "limit", str(limit))
        if start_key is not None:
            url = set_url_parameter(url, "startkey", json.dumps(start_key))
        if end_key is not None:
            url = set_url_parameter(url, "endkey", json.dumps(end_key))
        if descending:
            url = set_url_parameter(url, "descending", "true")
        if keys is not None:
            url = set_url_parameter(url, "keys", json.dumps(list(keys)))
        return await self._request("GET", condition_url(self.db, url))

    async def bulk(
        self,
        docs: Sequence[Mapping[str, Any]] | str,
        *,
        all_or_nothing: bool = False,
    ) -> CouchResponse:
        """Insert or update many documents with ``_bulk_docs``.

        *docs* is a list of documents, or a pre-serialized
        ``{"docs": [...]}`` JSON string.
        """
        if docs is None:
            raise InvalidParameterError("bulk() must have a document list")
        url = BULK_DOCS
        if all_or_nothing:
            url = set_url_parameter(url, "all_or_nothing", "true")
        body: Any = docs if isinstance(docs, str) else {"docs": [dict(d) for d in docs]}
        return await self._request("POST", condition_url(self.db, url), body=body, headers=_JSON_HEADERS)

    # ------------------------------------------------------------------
    # Databases and server
    # ------------------------------------------------------------------

    async def create_database(self, name: str) -> CouchResponse:
        if not name:
            raise InvalidParameterError("create_database() expects a database name")
        return await self._request("PUT", root_url(name))

    async def delete_database(self, name: str) -> CouchResponse:
        """Delete a database; deselects it if it is the current one."""
        if not name:
            raise InvalidParameterError("delete_database() expects a database name")
        if name == self.db:
            self.db = None
        return await self._request("DELETE", root_url(name))

    async def get_database_info(self, name: str | None = None) -> CouchResponse:
        """Information about *name*, or the current database."""
        target = name or self.db
        if not target:
            raise InvalidParameterError("get_database_info() expects a database name")
        return await self._request("GET", root_url(target))

    async def get_session(self) -> CouchResponse:
        return await self._request("GET", SESSION)

    async def get_stats(self) -> CouchResponse:
        return await self._request("GET", STATS)

    async def get_all_dbs(self) -> CouchResponse:
        return await self._request("GET", ALL_DBS)

    async def generate_ids(self, amount: int = 10) -> CouchResponse:
        """Ask the server for *amount* fresh UUIDs."""
        if amount < 1:
            raise InvalidParameterError("generate_ids() expects a positive amount")
        return await self._request("GET", set_url_parameter(UUIDS, "count", str(amount)))

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    @property
    def change_notification(self) -> EventChannel:
        """Broadcast channel of change events; any number of subscribers."""
        return self._notifier.channel

    @property
    def change_notifications_paused(self) -> bool:
        return self._notifier.paused

    @property
    def change_notification_db_name(self) -> str | None:
        """Database being watched, ``None`` when notification is stopped."""
        return self._notifier.database

    def start_change_notification(
        self,
        parameters: NotificationParameters | None = None,
        database: str | None = None,
    ) -> None:
        """Start notifying on *database* (default: the current database).

        Raises:
            StateError: Notification is already running or paused.
            InvalidParameterError: No database is given or selected.
        """
        name = database or self.db
        if not name:
            raise InvalidParameterError("start_change_notification() needs a database")
        self._notifier.start(name, parameters, context=self._context)

    def stop_change_notification(self) -> None:
        self._notifier.stop()

    def pause_change_notifications(self) -> None:
        self._notifier.pause()

    def restart_change_notifications(self) -> None:
        self._notifier.restart()

    def update_change_notification_parameters(self, parameters: NotificationParameters) -> None:
        self._notifier.update_parameters(parameters)
