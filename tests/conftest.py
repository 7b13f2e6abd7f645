"""
Shared test fixtures for hvclient tests.

Provides a scripted fake HVCA server on top of httpx.MockTransport,
response streams that record how they were consumed, and common
configuration fixtures.
"""

from __future__ import annotations

import asyncio
import json
import threading
import time
from collections import defaultdict, deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest

from hvclient import AsyncHVClient, HVClient
from hvclient.config import HVClientConfig, RetryPolicy

BASE_URL = "http://hvca.test/v2"


class TrackingStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    """Response body that counts reads and closes."""

    def __init__(self, content: bytes) -> None:
        self._content = content
        self.reads = 0
        self.closes = 0

    def __iter__(self):
        self.reads += 1
        yield self._content

    async def __aiter__(self):
        self.reads += 1
        yield self._content

    def close(self) -> None:
        self.closes += 1

    async def aclose(self) -> None:
        self.closes += 1

    @property
    def drained(self) -> bool:
        return self.reads == 1 and self.closes == 1


@dataclass
class Reply:
    """One scripted server response."""

    status: int
    body: Any = None
    content_type: str | None = "application/json"
    headers: dict[str, str] = field(default_factory=dict)

    def content(self) -> bytes:
        if self.body is None:
            return b""
        if isinstance(self.body, bytes):
            return self.body
        return json.dumps(self.body).encode()


def problem(status: int, description: str) -> Reply:
    return Reply(status, {"description": description}, "application/problem+json")


class FakeHVCA:
    """Scripted HVCA server.

    Replies queued with ``on`` are served in order; once a path's queue is
    empty its ``always`` reply is used. Logins succeed with a fresh token
    unless replies are queued for ``/login``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queues: dict[str, deque[Reply]] = defaultdict(deque)
        self._defaults: dict[str, Reply] = {}
        self.requests: list[httpx.Request] = []
        self.streams: list[TrackingStream] = []
        self.tokens_issued = 0
        self.login_delay = 0.0

    def on(self, path: str, *replies: Reply) -> FakeHVCA:
        self._queues[path].extend(replies)
        return self

    def always(self, path: str, reply: Reply) -> FakeHVCA:
        self._defaults[path] = reply
        return self

    def calls_to(self, path: str) -> int:
        return sum(1 for r in self.requests if self._path(r) == path)

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if self._path(r) == path]

    @property
    def logins(self) -> int:
        return self.calls_to("/login")

    @property
    def all_drained(self) -> bool:
        return all(stream.drained for stream in self.streams)

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path.removeprefix("/v2")

    def _next_reply(self, path: str) -> Reply:
        with self._lock:
            if self._queues[path]:
                return self._queues[path].popleft()
            if path in self._defaults:
                return self._defaults[path]
            if path == "/login":
                self.tokens_issued += 1
                return Reply(200, {"access_token": f"token-{self.tokens_issued}"})
        return problem(404, "Not Found")

    def _respond(self, request: httpx.Request) -> httpx.Response:
        path = self._path(request)
        reply = self._next_reply(path)
        stream = TrackingStream(reply.content())
        headers = dict(reply.headers)
        if reply.content_type:
            headers["Content-Type"] = reply.content_type
        with self._lock:
            self.requests.append(request)
            self.streams.append(stream)
        return httpx.Response(reply.status, headers=headers, stream=stream)

    def handle(self, request: httpx.Request) -> httpx.Response:
        if self._path(request) == "/login" and self.login_delay:
            time.sleep(self.login_delay)
        return self._respond(request)

    async def handle_async(self, request: httpx.Request) -> httpx.Response:
        if self._path(request) == "/login" and self.login_delay:
            await asyncio.sleep(self.login_delay)
        return self._respond(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def async_transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle_async)


class FakeClock:
    """Monotonic clock advanced only by the recorded sleep."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config() -> HVClientConfig:
    """Provide a basic client configuration for testing."""
    return HVClientConfig(
        url=BASE_URL,
        api_key="test-api-key",
        api_secret="test-api-secret",
        retry=RetryPolicy(budget=5, wait=1.0),
    )


@pytest.fixture
def fake() -> FakeHVCA:
    return FakeHVCA()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def client(
    config: HVClientConfig, fake: FakeHVCA, sleeps: list[float]
) -> Iterator[HVClient]:
    """Provide a sync client wired to the fake server, recording backoff sleeps."""
    http = httpx.Client(base_url=config.url, transport=fake.transport())
    with HVClient(config, http_client=http, sleep=sleeps.append) as c:
        yield c


@pytest.fixture
def make_async_client(config: HVClientConfig, fake: FakeHVCA, sleeps: list[float]):
    """Factory for async clients wired to the fake server."""

    def factory(**kwargs: Any) -> AsyncHVClient:
        async def record(seconds: float) -> None:
            sleeps.append(seconds)

        kwargs.setdefault("sleep", record)
        http = httpx.AsyncClient(base_url=config.url, transport=fake.async_transport())
        return AsyncHVClient(kwargs.pop("config", config), http_client=http, **kwargs)

    return factory
