"""Tests for couchfeed.main entry point."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import patch

import httpx
import pytest

from couchfeed.changes.events import ChangeEvent, ChangeEventType
from couchfeed.client.client import CouchClient
from couchfeed.config.settings import AppConfig, CouchServerConfig
from couchfeed.errors.http_errors import TransportError
from couchfeed.main import log_event, main, watch


def test_main_runs_watch() -> None:
    """Verify that main() hands the watch coroutine to asyncio.run."""

    def fake_run(coro):
        assert coro.__name__ == "watch"
        coro.close()

    with patch("couchfeed.main.asyncio.run", side_effect=fake_run) as mock_run:
        main()
    mock_run.assert_called_once()


def test_main_suppresses_keyboard_interrupt() -> None:
    def interrupted(coro):
        coro.close()
        raise KeyboardInterrupt

    with patch("couchfeed.main.asyncio.run", side_effect=interrupted):
        main()


def test_log_event(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="couchfeed.main"):
        log_event(ChangeEvent(type=ChangeEventType.CREATE, sequence=1, doc_id="a", revision="1-x"))
        log_event(ChangeEvent.from_error(TransportError("refused"), sequence="0"))
    assert "create a rev=1-x seq=1" in caplog.text
    assert "refused" in caplog.text


async def test_watch_starts_and_stops_notification() -> None:
    polls: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        polls.append(request)
        await asyncio.sleep(0.01)
        return httpx.Response(200, json={"results": [], "last_seq": 0})

    config = AppConfig(couch=CouchServerConfig(host="couch.test", database="mydb"))
    client = CouchClient(config.couch.to_context(), transport=httpx.MockTransport(handler))
    stop = asyncio.Event()

    async def stop_soon() -> None:
        while not polls:
            await asyncio.sleep(0.005)
        stop.set()

    with patch("couchfeed.main.CouchClient.from_config", return_value=client):
        await asyncio.gather(watch(config, stop=stop), stop_soon())

    assert polls[0].url.path == "/mydb/_changes"
    assert client.is_connected is False
    assert client.change_notification_db_name is None
