"""Unit tests for the asynchronous request executor and client."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from conftest import BASE_URL, FakeClock, FakeHVCA, Reply, problem
from hvclient.config import HVClientConfig, RetryPolicy
from hvclient.core.authenticator import DEFAULT_TOKEN_LIFETIME
from hvclient.core.endpoints import counter_certs_issued
from hvclient.core.http_executor import AsyncRequestExecutor
from hvclient.errors import (
    ERR_SERVICE_BUSY,
    ERR_TOKEN_EXPIRED,
    APIError,
    LoginError,
    RequestTimeoutError,
)
from hvclient.models import LoginRequest

ISSUED = "/counters/certificates/issued"


class TestAsyncExecutor:
    """Tests for AsyncRequestExecutor through AsyncHVClient."""

    def test_returns_decoded_value(self, make_async_client, fake: FakeHVCA) -> None:
        fake.always(ISSUED, Reply(200, {"value": 9}))

        async def scenario() -> int:
            async with make_async_client() as client:
                return await client.counter_certs_issued()

        assert asyncio.run(scenario()) == 9
        assert fake.logins == 1
        assert fake.all_drained

    def test_budget_exhaustion(
        self, make_async_client, fake: FakeHVCA, sleeps: list[float]
    ) -> None:
        fake.always(ISSUED, problem(503, "Service busy, please retry later"))

        async def scenario() -> None:
            async with make_async_client() as client:
                await client.counter_certs_issued()

        with pytest.raises(APIError) as exc_info:
            asyncio.run(scenario())

        assert exc_info.value == ERR_SERVICE_BUSY
        assert fake.calls_to(ISSUED) == 6
        assert sleeps == [1.0, 2.0, 3.0, 4.0, 5.0]
        assert fake.all_drained

    def test_relogin_then_retry(self, make_async_client, fake: FakeHVCA) -> None:
        async def scenario() -> int:
            async with make_async_client() as client:
                await client.login()
                fake.on(ISSUED, problem(401, "Token expired"), Reply(200, {"value": 42}))
                return await client.counter_certs_issued()

        assert asyncio.run(scenario()) == 42
        assert fake.calls_to(ISSUED) == 2
        assert fake.logins == 2
        assert fake.all_drained

    def test_second_401_is_returned(self, make_async_client, fake: FakeHVCA) -> None:
        fake.always(ISSUED, problem(401, "Token expired"))

        async def scenario() -> None:
            async with make_async_client() as client:
                await client.counter_certs_issued()

        with pytest.raises(APIError) as exc_info:
            asyncio.run(scenario())

        assert exc_info.value == ERR_TOKEN_EXPIRED
        assert fake.logins == 2

    def test_login_failure(self, make_async_client, fake: FakeHVCA) -> None:
        fake.on("/login", problem(401, "Invalid API key or secret"))

        async def scenario() -> None:
            async with make_async_client() as client:
                await client.trust_chain()

        with pytest.raises(LoginError):
            asyncio.run(scenario())

        assert fake.calls_to("/trustchain") == 0

    def test_concurrent_calls_share_one_login(
        self, make_async_client, fake: FakeHVCA
    ) -> None:
        fake.login_delay = 0.05
        fake.always(ISSUED, Reply(200, {"value": 5}))

        async def scenario() -> list[int]:
            async with make_async_client() as client:
                return await asyncio.gather(
                    *(client.counter_certs_issued() for _ in range(20))
                )

        assert asyncio.run(scenario()) == [5] * 20
        assert fake.logins == 1
        assert fake.all_drained

    def test_expired_token_refreshed_once_under_concurrency(
        self, fake: FakeHVCA
    ) -> None:
        clock = FakeClock()
        fake.always(ISSUED, Reply(200, {"value": 5}))

        async def scenario() -> list[int]:
            async with httpx.AsyncClient(
                base_url=BASE_URL, transport=fake.async_transport()
            ) as http:
                executor = AsyncRequestExecutor(
                    http, LoginRequest(api_key="key", api_secret="secret"), clock=clock
                )
                await executor.execute(counter_certs_issued())
                clock.advance(DEFAULT_TOKEN_LIFETIME + 1)
                fake.login_delay = 0.05
                return await asyncio.gather(
                    *(executor.execute(counter_certs_issued()) for _ in range(20))
                )

        assert asyncio.run(scenario()) == [5] * 20
        assert fake.logins == 2
        auth = {r.headers["Authorization"] for r in fake.requests_to(ISSUED)[1:]}
        assert auth == {"Bearer token-2"}
        assert fake.all_drained


class TestAsyncCancellation:
    """Tests for timeouts and task cancellation."""

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_non_positive_timeout_sends_nothing(
        self, make_async_client, fake: FakeHVCA, timeout: float
    ) -> None:
        async def scenario() -> None:
            async with make_async_client() as client:
                await client.counter_certs_issued(timeout=timeout)

        with pytest.raises(RequestTimeoutError):
            asyncio.run(scenario())

        assert fake.requests == []

    def test_timeout_interrupts_backoff(
        self, make_async_client, fake: FakeHVCA, config: HVClientConfig
    ) -> None:
        slow = config.with_overrides(retry=RetryPolicy(budget=5, wait=30.0))
        fake.always(ISSUED, problem(503, "Service busy, please retry later"))

        async def scenario() -> None:
            async with make_async_client(config=slow, sleep=asyncio.sleep) as client:
                await client.counter_certs_issued(timeout=0.2)

        started = time.monotonic()
        with pytest.raises(RequestTimeoutError):
            asyncio.run(scenario())

        assert time.monotonic() - started < 5
        assert fake.calls_to(ISSUED) == 1
        assert fake.all_drained

    def test_cancellation_propagates(
        self, make_async_client, fake: FakeHVCA, config: HVClientConfig
    ) -> None:
        slow = config.with_overrides(retry=RetryPolicy(budget=5, wait=30.0))
        fake.always(ISSUED, problem(503, "Service busy, please retry later"))

        async def scenario() -> None:
            async with make_async_client(config=slow, sleep=asyncio.sleep) as client:
                task = asyncio.create_task(client.counter_certs_issued())
                while fake.calls_to(ISSUED) == 0:
                    await asyncio.sleep(0.01)
                task.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await task

        asyncio.run(scenario())

        assert fake.calls_to(ISSUED) == 1

    def test_login_timeout(self, make_async_client, fake: FakeHVCA) -> None:
        fake.login_delay = 5.0

        async def scenario() -> None:
            async with make_async_client() as client:
                await client.login(timeout=0.05)

        with pytest.raises(RequestTimeoutError):
            asyncio.run(scenario())
