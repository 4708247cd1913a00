"""Tests for the request executor — uses httpx mock transport."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from couchfeed.errors.http_errors import CouchError, TransportError
from couchfeed.http.executor import RequestExecutor
from couchfeed.http.models import ClientContext, CouchResponse

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _recording_transport(
    captured: list[httpx.Request],
    *,
    status_code: int = 200,
    payload: object = None,
    headers: dict[str, str] | None = None,
) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        if payload is None:
            return httpx.Response(status_code, headers=headers)
        return httpx.Response(status_code, json=payload, headers=headers)

    return httpx.MockTransport(handler)


async def _executor(transport: httpx.MockTransport, context: ClientContext | None = None) -> RequestExecutor:
    executor = RequestExecutor(context or ClientContext(host="couch.test"), transport=transport)
    await executor.connect()
    return executor


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestExecutorLifecycle:
    async def test_not_connected_by_default(self) -> None:
        assert RequestExecutor().is_connected is False

    async def test_connect_and_close(self) -> None:
        executor = RequestExecutor()
        await executor.connect()
        assert executor.is_connected is True
        await executor.close()
        assert executor.is_connected is False

    async def test_close_idempotent(self) -> None:
        executor = RequestExecutor()
        await executor.close()
        assert executor.is_connected is False

    async def test_execute_without_connect(self) -> None:
        with pytest.raises(TransportError, match="not connected"):
            await RequestExecutor().execute("GET", "/")

    async def test_default_context(self) -> None:
        assert RequestExecutor().context == ClientContext()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestExecute:
    async def test_get_relative_url(self) -> None:
        captured: list[httpx.Request] = []
        executor = await _executor(_recording_transport(captured, payload={"ok": True}))
        try:
            resp = await executor.execute("GET", "/mydb/doc1")
        finally:
            await executor.close()

        assert isinstance(resp, CouchResponse)
        assert resp.status_code == 200
        assert resp.body == {"ok": True}
        assert str(captured[0].url) == "http://couch.test:5984/mydb/doc1"
        assert captured[0].headers["accept"] == "application/json"
        assert "authorization" not in captured[0].headers

    async def test_absolute_url_passthrough(self) -> None:
        captured: list[httpx.Request] = []
        executor = await _executor(_recording_transport(captured, payload={}))
        try:
            await executor.execute("GET", "https://other.test:6984/_up")
        finally:
            await executor.close()
        assert str(captured[0].url) == "https://other.test:6984/_up"

    async def test_dict_body_sent_as_json(self) -> None:
        captured: list[httpx.Request] = []
        executor = await _executor(_recording_transport(captured, status_code=201, payload={"ok": True}))
        try:
            await executor.execute("PUT", "/mydb/doc1", body={"name": "x"})
        finally:
            await executor.close()

        assert captured[0].method == "PUT"
        assert json.loads(captured[0].content) == {"name": "x"}
        assert captured[0].headers["content-type"] == "application/json"

    async def test_string_body_sent_verbatim(self) -> None:
        captured: list[httpx.Request] = []
        executor = await _executor(_recording_transport(captured, payload={"ok": True}))
        try:
            await executor.execute(
                "POST",
                "/mydb",
                body='{"raw": 1}',
                headers={"Content-Type": "application/json"},
            )
        finally:
            await executor.close()

        assert captured[0].content == b'{"raw": 1}'
        assert captured[0].headers["content-type"] == "application/json"

    async def test_basic_auth_from_context(self) -> None:
        captured: list[httpx.Request] = []
        ctx = ClientContext(host="couch.test", user="admin", password="secret")
        executor = await _executor(_recording_transport(captured, payload={}), ctx)
        try:
            await executor.execute("GET", "/_session")
        finally:
            await executor.close()

        expected = base64.b64encode(b"admin:secret").decode()
        assert captured[0].headers["authorization"] == f"Basic {expected}"

    async def test_per_call_context_overrides_default(self) -> None:
        captured: list[httpx.Request] = []
        executor = await _executor(_recording_transport(captured, payload={}))
        try:
            await executor.execute(
                "GET",
                "/_all_dbs",
                context=ClientContext(host="replica.test", port=6984, scheme="https"),
            )
        finally:
            await executor.close()
        assert str(captured[0].url) == "https://replica.test:6984/_all_dbs"

    async def test_caller_headers_override_defaults(self) -> None:
        captured: list[httpx.Request] = []
        executor = await _executor(_recording_transport(captured, payload={}))
        try:
            await executor.execute("GET", "/", headers={"Accept": "text/plain"})
        finally:
            await executor.close()
        assert captured[0].headers["accept"] == "text/plain"

    async def test_empty_body_and_headers(self) -> None:
        captured: list[httpx.Request] = []
        transport = _recording_transport(captured, headers={"ETag": '"3-abc"'})
        executor = await _executor(transport)
        try:
            resp = await executor.execute("HEAD", "/mydb/doc1")
        finally:
            await executor.close()

        assert resp.body is None
        assert resp.etag == "3-abc"
        assert resp.headers["etag"] == '"3-abc"'

    async def test_text_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="plain text")

        executor = await _executor(httpx.MockTransport(handler))
        try:
            resp = await executor.execute("GET", "/")
        finally:
            await executor.close()
        assert resp.body == "plain text"
        assert resp.json == {}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestExecuteErrors:
    async def test_non_2xx_raises_couch_error(self) -> None:
        transport = _recording_transport(
            [],
            status_code=404,
            payload={"error": "not_found", "reason": "missing"},
        )
        executor = await _executor(transport)
        try:
            with pytest.raises(CouchError) as exc_info:
                await executor.execute("GET", "/mydb/nope")
        finally:
            await executor.close()

        err = exc_info.value
        assert err.status_code == 404
        assert err.error == "not_found"
        assert err.reason == "missing"
        assert err.body == {"error": "not_found", "reason": "missing"}
        assert err.code == "couch-error"
        assert "not_found: missing" in err.message

    async def test_conflict(self) -> None:
        transport = _recording_transport(
            [],
            status_code=409,
            payload={"error": "conflict", "reason": "Document update conflict."},
        )
        executor = await _executor(transport)
        try:
            with pytest.raises(CouchError) as exc_info:
                await executor.execute("PUT", "/mydb/doc1", body={})
        finally:
            await executor.close()
        assert exc_info.value.status_code == 409

    async def test_non_json_error_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="Internal Server Error")

        executor = await _executor(httpx.MockTransport(handler))
        try:
            with pytest.raises(CouchError) as exc_info:
                await executor.execute("GET", "/")
        finally:
            await executor.close()
        assert exc_info.value.error == ""
        assert "Internal Server Error" in exc_info.value.message

    async def test_connection_error_raises_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused")

        executor = await _executor(httpx.MockTransport(handler))
        try:
            with pytest.raises(TransportError) as exc_info:
                await executor.execute("GET", "/mydb")
        finally:
            await executor.close()
        assert exc_info.value.status_code == 502
        assert exc_info.value.code == "transport-error"
        assert "Connection refused" in exc_info.value.message

    async def test_timeout_raises_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out")

        executor = await _executor(httpx.MockTransport(handler))
        try:
            with pytest.raises(TransportError):
                await executor.execute("GET", "/mydb")
        finally:
            await executor.close()
