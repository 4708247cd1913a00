"""Request executor — performs one CouchDB HTTP call per ``execute``.

The executor is the only component that touches the network. It turns a
method, URL, optional body and headers into an ``httpx`` request and returns a
``CouchResponse``. Failures are raised:

- ``TransportError`` when the request could not be completed
- ``CouchError`` when CouchDB answered with a non-2xx status
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from couchfeed.errors.http_errors import CouchError, TransportError
from couchfeed.http.models import ClientContext, CouchResponse

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

_DEFAULT_CONNECT_TIMEOUT = 10.0


class RequestExecutor:
    """Async HTTP executor bound to a CouchDB server.

    Usage::

        executor = RequestExecutor(ClientContext(host="localhost", db="mydb"))
        await executor.connect()
        try:
            resp = await executor.execute("GET", "/mydb/some-doc")
        finally:
            await executor.close()

    Reads carry no timeout: the changes feed is bounded by its heartbeat.
    """

    def __init__(
        self,
        context: ClientContext | None = None,
        *,
        connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            context: Default client context used when a call supplies none.
            connect_timeout: Seconds allowed for establishing a connection.
            transport: Optional ``httpx`` transport (tests use ``MockTransport``).
        """
        self._context = context or ClientContext()
        self._connect_timeout = connect_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=self._connect_timeout),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    @property
    def context(self) -> ClientContext:
        return self._context

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        context: ClientContext | None = None,
    ) -> CouchResponse:
        """Perform one HTTP request.

        Args:
            method: HTTP verb (``GET``, ``PUT``, ``COPY``, ...).
            url: Server-relative path (``/db/doc?rev=..``) or an absolute URL.
            body: ``dict``/``list`` sent as JSON, ``str``/``bytes`` sent as-is.
            headers: Extra request headers; override the defaults.
            context: Client context for this call (defaults to the executor's).

        Returns:
            CouchResponse for a 2xx answer.

        Raises:
            TransportError: The request could not be completed.
            CouchError: CouchDB returned a non-2xx status.
        """
        client = self._ensure_connected()
        ctx = context or self._context

        request_headers = {"Accept": "application/json"}
        auth = ctx.authorization_header()
        if auth is not None:
            request_headers["Authorization"] = auth
        if headers:
            request_headers.update(headers)

        kwargs: dict[str, Any] = {"headers": request_headers}
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        elif body is not None:
            kwargs["content"] = body

        full_url = url if url.startswith(("http://", "https://")) else f"{ctx.base_url}{url}"
        logger.debug("%s %s", method, full_url)

        try:
            response = await client.request(method, full_url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        result = CouchResponse(
            status_code=response.status_code,
            body=_decode_body(response),
            headers={k.lower(): v for k, v in response.headers.items()},
        )
        if not result.ok:
            self._raise_for_status(result, method, url)
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Request executor not connected. Call connect() first."
            raise TransportError(msg, status_code=500)
        return self._client

    def _raise_for_status(self, response: CouchResponse, method: str, url: str) -> None:
        """Raise a CouchError from a non-2xx response."""
        status = response.status_code
        error = str(response.json.get("error", ""))
        reason = str(response.json.get("reason", ""))
        detail = f"{error}: {reason}" if error else str(response.body or "")
        raise CouchError(
            f"CouchDB {method} {url} failed ({status}): {detail}",
            status_code=status,
            error=error,
            reason=reason,
            body=response.body,
        )


def _decode_body(response: httpx.Response) -> Any:
    """Parse a JSON body, falling back to raw text (``None`` when empty)."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
