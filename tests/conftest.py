"""Shared test fixtures for the couchfeed test suite."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl, urlsplit

import pytest

from couchfeed.changes.notifier import ChangeNotifier, NotifierState
from couchfeed.http.models import ClientContext, CouchResponse

EMPTY_FEED = {"results": [], "last_seq": 0}


@dataclass
class PendingRequest:
    """A request captured by ``FakeExecutor``; the test decides its outcome."""

    method: str
    url: str
    future: asyncio.Future[CouchResponse]
    context: ClientContext | None = None

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def query(self) -> dict[str, str]:
        return dict(parse_qsl(urlsplit(self.url).query))

    def respond(self, body: Any, status_code: int = 200) -> None:
        self.future.set_result(CouchResponse(status_code=status_code, body=body))

    def fail(self, exc: Exception) -> None:
        self.future.set_exception(exc)


@dataclass
class FakeExecutor:
    """Executor double: every request blocks until the test resolves it."""

    requests: list[PendingRequest] = field(default_factory=list)
    outstanding: int = 0
    max_outstanding: int = 0
    _arrivals: asyncio.Queue[PendingRequest] = field(default_factory=asyncio.Queue)

    async def execute(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        headers: Any = None,
        context: ClientContext | None = None,
    ) -> CouchResponse:
        future: asyncio.Future[CouchResponse] = asyncio.get_running_loop().create_future()
        request = PendingRequest(method=method, url=url, future=future, context=context)
        self.requests.append(request)
        self._arrivals.put_nowait(request)
        self.outstanding += 1
        self.max_outstanding = max(self.max_outstanding, self.outstanding)
        try:
            return await future
        finally:
            self.outstanding -= 1

    async def next_request(self, timeout: float = 1.0) -> PendingRequest:
        """Wait for the notifier to issue its next request."""
        return await asyncio.wait_for(self._arrivals.get(), timeout)

    def release_all(self) -> None:
        """Resolve every unresolved request with an empty feed."""
        for request in self.requests:
            if not request.future.done():
                request.respond(EMPTY_FEED)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
async def notifier(fake_executor: FakeExecutor):
    """A stopped notifier over ``fake_executor``; torn down cleanly."""
    n = ChangeNotifier(fake_executor)  # type: ignore[arg-type]
    yield n
    if n.state is not NotifierState.STOPPED:
        n.stop()
    fake_executor.release_all()
    await n.wait_closed()


@pytest.fixture
def context() -> ClientContext:
    return ClientContext(host="couch.test", port=5984, db="mydb")
