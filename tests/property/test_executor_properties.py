"""Property-based tests for the request executor.

Property: Linear Backoff
- Delay grows linearly with the number of retries used
- N consecutive not-ready responses with N > budget take budget+1 attempts

Property: Response Classification
- Only 503 and 202 are retried
- 401 forces a re-login except on the login call itself
"""

from __future__ import annotations

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import BASE_URL, FakeClock, FakeHVCA, problem
from hvclient.config import RetryPolicy
from hvclient.core.endpoints import counter_certs_issued
from hvclient.core.http_executor import (
    ResponseClass,
    SyncRequestExecutor,
    classify_response,
)
from hvclient.errors import APIError
from hvclient.models import LoginRequest

budget_strategy = st.integers(min_value=0, max_value=8)
wait_strategy = st.floats(min_value=0.0, max_value=5.0, allow_nan=False)
status_strategy = st.integers(min_value=100, max_value=599)


class TestLinearBackoff:
    """Property tests for retry backoff."""

    @given(wait=wait_strategy, attempts=st.integers(min_value=1, max_value=20))
    @settings(max_examples=100)
    def test_delay_is_linear(self, wait: float, attempts: int) -> None:
        """Property: delay equals wait times retries used."""
        policy = RetryPolicy(budget=5, wait=wait)

        assert policy.get_delay(attempts) == wait * attempts

    @given(
        budget=budget_strategy,
        wait=wait_strategy,
        statuses=st.lists(st.sampled_from([503, 202]), min_size=9, max_size=12),
    )
    @settings(max_examples=30, deadline=None)
    def test_budget_exhaustion(
        self, budget: int, wait: float, statuses: list[int]
    ) -> None:
        """Property: budget+1 attempts, sleeping the linear series in between."""
        fake = FakeHVCA()
        for status in statuses:
            fake.on("/counters/certificates/issued", problem(status, "not ready"))
        clock = FakeClock()
        executor = SyncRequestExecutor(
            httpx.Client(base_url=BASE_URL, transport=fake.transport()),
            LoginRequest(api_key="k", api_secret="s"),
            retry=RetryPolicy(budget=budget, wait=wait),
            sleep=clock.sleep,
            clock=clock,
        )

        try:
            executor.execute(counter_certs_issued())
        except APIError as e:
            assert e.status_code == statuses[budget]
        else:
            raise AssertionError("expected APIError")

        assert fake.calls_to("/counters/certificates/issued") == budget + 1
        assert clock.sleeps == [wait * n for n in range(1, budget + 1)]
        assert fake.all_drained


class TestClassification:
    """Property tests for response classification."""

    @given(status=status_strategy, is_login=st.booleans())
    @settings(max_examples=200)
    def test_only_503_and_202_retry(self, status: int, is_login: bool) -> None:
        outcome = classify_response(status, is_login=is_login)

        assert (outcome is ResponseClass.RETRY) == (status in {202, 503})

    @given(status=status_strategy)
    @settings(max_examples=200)
    def test_success_is_2xx_without_202(self, status: int) -> None:
        outcome = classify_response(status, is_login=False)

        assert (outcome is ResponseClass.SUCCESS) == (
            200 <= status <= 299 and status != 202
        )

    def test_401(self) -> None:
        assert classify_response(401, is_login=False) is ResponseClass.RELOGIN
        assert classify_response(401, is_login=True) is ResponseClass.FATAL
