"""Request executors for hvclient.

Executes one logical HVCA operation to completion: pre-emptive re-login,
bearer authentication, response classification, a forced re-login on 401,
and bounded linear-backoff retry of 503 and 202 responses. Shared by the
sync and async clients.

Every response is read in full and closed as soon as it arrives, before it
is classified.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from ..config import RetryPolicy
from ..errors import RequestTimeoutError
from ..http import (
    AUTHORIZATION_HEADER,
    CONTENT_TYPE_HEADER,
    CONTENT_TYPE_JSON,
    verify_content_type,
)
from ..telemetry import get_logger, request_span
from .authenticator import DEFAULT_TOKEN_LIFETIME, AsyncAuthenticator, Authenticator
from .errors import ErrorFactory
from .token_store import TokenStore

if TYPE_CHECKING:
    from ..models import LoginRequest
    from .operation import Operation

T = TypeVar("T")


class ResponseClass(StrEnum):
    """What the executor does with a response."""

    SUCCESS = "success"
    RELOGIN = "relogin"
    RETRY = "retry"
    FATAL = "fatal"


# 202 means "accepted, result not ready yet" and is retried exactly like 503.
RETRYABLE_STATUSES = frozenset({202, 503})


def classify_response(status_code: int, *, is_login: bool) -> ResponseClass:
    """Classify an HVCA response status.

    HVCA never redirects, so anything outside 2xx (3xx included) is an error.

    Args:
        status_code: HTTP status code.
        is_login: Whether the response answers the login call itself.

    Returns:
        The action the executor should take.
    """
    if status_code in RETRYABLE_STATUSES:
        return ResponseClass.RETRY
    if 200 <= status_code <= 299:
        return ResponseClass.SUCCESS
    if status_code == 401 and not is_login:
        return ResponseClass.RELOGIN
    return ResponseClass.FATAL


def decode_response(operation: Operation[T], response: httpx.Response) -> T:
    """Decode a successful response as the operation asks.

    Raises:
        ContentTypeError: If a JSON body was expected but not received.
        SerializationError: If the body can't be decoded.
        HeaderError: If a header the decoder needs is missing or malformed.
    """
    if operation.decoder is None:
        return response  # type: ignore[return-value]
    if operation.json_response:
        verify_content_type(response, CONTENT_TYPE_JSON)
    return operation.decoder(response)


class _ExecutorBase:
    def __init__(
        self,
        *,
        token_store: TokenStore | None,
        retry: RetryPolicy | None,
        extra_headers: Mapping[str, str] | None,
        clock: Callable[[], float],
    ) -> None:
        self._token_store = token_store or TokenStore(clock)
        self._retry = retry or RetryPolicy()
        self._extra_headers = dict(extra_headers or {})
        self._clock = clock
        self._logger = get_logger()

    @property
    def token_store(self) -> TokenStore:
        return self._token_store

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    def clock(self) -> float:
        """Current time on the executor's monotonic clock."""
        return self._clock()

    def _build_request(
        self,
        client: httpx.Client | httpx.AsyncClient,
        operation: Operation[Any],
        content: bytes | None,
        timeout: Any,
    ) -> httpx.Request:
        headers = dict(self._extra_headers)
        if content is not None:
            headers[CONTENT_TYPE_HEADER] = CONTENT_TYPE_JSON
        return client.build_request(
            operation.method,
            operation.path,
            content=content,
            params=dict(operation.params) or None,
            headers=headers,
            timeout=timeout,
        )

    def _authorize(self, request: httpx.Request) -> None:
        request.headers[AUTHORIZATION_HEADER] = f"Bearer {self._token_store.read()}"

    def _log_relogin(self, operation: Operation[Any], attempt: int) -> None:
        self._logger.info(
            "HVCA token rejected, logging in again",
            operation=operation.name,
            attempt=attempt,
        )

    def _log_retry(
        self,
        operation: Operation[Any],
        status_code: int,
        attempt: int,
        delay: float,
        retries_remaining: int,
    ) -> None:
        self._logger.warning(
            "HVCA request not ready, retrying",
            operation=operation.name,
            status_code=status_code,
            attempt=attempt,
            delay=delay,
            retries_remaining=retries_remaining,
        )


class SyncRequestExecutor(_ExecutorBase):
    """Synchronous executor with re-login and retry.

    A call may be bounded by a deadline on the executor's clock; it covers
    login, every send and every backoff sleep.
    """

    def __init__(
        self,
        client: httpx.Client,
        credentials: LoginRequest,
        *,
        token_store: TokenStore | None = None,
        retry: RetryPolicy | None = None,
        token_lifetime: float = DEFAULT_TOKEN_LIFETIME,
        extra_headers: Mapping[str, str] | None = None,
        request_timeout: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize sync request executor.

        Args:
            client: HTTP client, with the HVCA base URL configured.
            credentials: API key and secret used to log in.
            token_store: Session token storage (a new one if omitted).
            retry: Retry budget and backoff for 503/202 responses.
            token_lifetime: Seconds after which a token is refreshed pre-emptively.
            extra_headers: Headers added to every request.
            request_timeout: Per-send timeout cap when a deadline applies.
            sleep: Blocking sleep used for backoff.
            clock: Monotonic clock deadlines are measured on.
        """
        super().__init__(
            token_store=token_store,
            retry=retry,
            extra_headers=extra_headers,
            clock=clock,
        )
        self._client = client
        self._request_timeout = request_timeout
        self._sleep = sleep
        self._authenticator = Authenticator(
            self,
            credentials,
            self._token_store,
            token_lifetime=token_lifetime,
        )

    @property
    def authenticator(self) -> Authenticator:
        return self._authenticator

    def execute(self, operation: Operation[T], *, timeout: float | None = None) -> T:
        """Execute an operation, optionally within ``timeout`` seconds.

        Returns:
            The decoded result, or the read and closed response when the
            operation has no decoder.

        Raises:
            APIError: On a fatal or retry-exhausted API response.
            LoginError: If a required login fails.
            NetworkError: On transport failure.
            RequestTimeoutError: If the deadline passes.
            SerializationError: On body encode/decode failure.
            ContentTypeError: If the response isn't JSON when JSON is expected.
            HeaderError: If a required response header is missing or malformed.
        """
        deadline = None if timeout is None else self._clock() + timeout
        return self.run(operation, deadline=deadline)

    def run(self, operation: Operation[T], *, deadline: float | None = None) -> T:
        """Execute an operation against an absolute deadline on the executor clock."""
        retries_remaining = self._retry.budget
        relogged_in = False
        attempt = 0

        while True:
            attempt += 1
            if not operation.is_login:
                self._authenticator.login_if_expired(deadline=deadline)
            self._check_deadline(deadline)

            content = operation.body.encode() if operation.has_body else None
            request = self._build_request(
                self._client, operation, content, self._send_timeout(deadline)
            )
            if not operation.is_login:
                self._authorize(request)

            response = self._send(operation, request, attempt)
            outcome = classify_response(response.status_code, is_login=operation.is_login)

            if outcome is ResponseClass.SUCCESS:
                return decode_response(operation, response)

            if outcome is ResponseClass.RELOGIN and not relogged_in:
                relogged_in = True
                self._log_relogin(operation, attempt)
                self._authenticator.login(deadline=deadline)
                continue

            error = ErrorFactory.from_http_response(response)

            if outcome is ResponseClass.RETRY and retries_remaining > 0:
                retries_remaining -= 1
                delay = self._retry.get_delay(self._retry.budget - retries_remaining)
                self._log_retry(
                    operation, response.status_code, attempt, delay, retries_remaining
                )
                self._backoff(delay, deadline)
                continue

            raise error

    def _send(
        self, operation: Operation[Any], request: httpx.Request, attempt: int
    ) -> httpx.Response:
        with request_span(
            operation.method, operation.path, operation.name, attempt
        ) as span:
            try:
                response = self._client.send(request, stream=True)
            except httpx.TransportError as e:
                raise ErrorFactory.from_transport_error(e) from e

            try:
                response.read()
            except httpx.TransportError as e:
                raise ErrorFactory.from_transport_error(e) from e
            finally:
                response.close()

            span.set_attribute("http.status_code", response.status_code)
            return response

    def _send_timeout(self, deadline: float | None) -> Any:
        if deadline is None:
            return httpx.USE_CLIENT_DEFAULT
        remaining = max(deadline - self._clock(), 0.0)
        if self._request_timeout is not None:
            remaining = min(remaining, self._request_timeout)
        return httpx.Timeout(remaining)

    def _check_deadline(self, deadline: float | None) -> None:
        if deadline is not None and self._clock() >= deadline:
            msg = "deadline exceeded before request could be sent"
            raise RequestTimeoutError(msg)

    def _backoff(self, delay: float, deadline: float | None) -> None:
        if deadline is not None and self._clock() + delay > deadline:
            msg = "deadline exceeded during retry backoff"
            raise RequestTimeoutError(msg)
        self._sleep(delay)


class AsyncRequestExecutor(_ExecutorBase):
    """Asynchronous executor with re-login and retry.

    Sends and backoff sleeps are cancellation points; cancelling the calling
    task, or an enclosing ``asyncio.timeout``, aborts the operation promptly.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: LoginRequest,
        *,
        token_store: TokenStore | None = None,
        retry: RetryPolicy | None = None,
        token_lifetime: float = DEFAULT_TOKEN_LIFETIME,
        extra_headers: Mapping[str, str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize async request executor.

        Args:
            client: Async HTTP client, with the HVCA base URL configured.
            credentials: API key and secret used to log in.
            token_store: Session token storage (a new one if omitted).
            retry: Retry budget and backoff for 503/202 responses.
            token_lifetime: Seconds after which a token is refreshed pre-emptively.
            extra_headers: Headers added to every request.
            sleep: Awaitable sleep used for backoff.
            clock: Monotonic clock the token lifetime is measured on.
        """
        super().__init__(
            token_store=token_store,
            retry=retry,
            extra_headers=extra_headers,
            clock=clock,
        )
        self._client = client
        self._sleep = sleep
        self._authenticator = AsyncAuthenticator(
            self,
            credentials,
            self._token_store,
            token_lifetime=token_lifetime,
        )

    @property
    def authenticator(self) -> AsyncAuthenticator:
        return self._authenticator

    async def execute(
        self, operation: Operation[T], *, timeout: float | None = None
    ) -> T:
        """Execute an operation, optionally within ``timeout`` seconds.

        Raises:
            RequestTimeoutError: If ``timeout`` elapses first.
            HVClientError: As for ``SyncRequestExecutor.execute``.
        """
        if timeout is None:
            return await self.run(operation)

        if timeout <= 0:
            msg = "deadline exceeded before request could be sent"
            raise RequestTimeoutError(msg, timeout_seconds=timeout)

        try:
            async with asyncio.timeout(timeout):
                return await self.run(operation)
        except TimeoutError as e:
            raise RequestTimeoutError(
                f"operation {operation.name!r} timed out", timeout_seconds=timeout, cause=e
            ) from e

    async def run(self, operation: Operation[T]) -> T:
        """Execute an operation with no deadline of its own."""
        retries_remaining = self._retry.budget
        relogged_in = False
        attempt = 0

        while True:
            attempt += 1

            if not operation.is_login:
                await self._authenticator.login_if_expired()

            content = operation.body.encode() if operation.has_body else None
            request = self._build_request(
                self._client, operation, content, httpx.USE_CLIENT_DEFAULT
            )
            if not operation.is_login:
                self._authorize(request)

            response = await self._send(operation, request, attempt)
            outcome = classify_response(response.status_code, is_login=operation.is_login)

            if outcome is ResponseClass.SUCCESS:
                return decode_response(operation, response)

            if outcome is ResponseClass.RELOGIN and not relogged_in:
                relogged_in = True
                self._log_relogin(operation, attempt)
                await self._authenticator.login()
                continue

            error = ErrorFactory.from_http_response(response)

            if outcome is ResponseClass.RETRY and retries_remaining > 0:
                retries_remaining -= 1
                delay = self._retry.get_delay(self._retry.budget - retries_remaining)
                self._log_retry(
                    operation, response.status_code, attempt, delay, retries_remaining
                )
                await self._sleep(delay)
                continue

            raise error

    async def _send(
        self, operation: Operation[Any], request: httpx.Request, attempt: int
    ) -> httpx.Response:
        with request_span(
            operation.method, operation.path, operation.name, attempt
        ) as span:
            try:
                response = await self._client.send(request, stream=True)
            except httpx.TransportError as e:
                raise ErrorFactory.from_transport_error(e) from e

            try:
                await response.aread()
            except httpx.TransportError as e:
                raise ErrorFactory.from_transport_error(e) from e
            finally:
                await response.aclose()

            span.set_attribute("http.status_code", response.status_code)
            return response


__all__ = [
    "AsyncRequestExecutor",
    "ResponseClass",
    "RETRYABLE_STATUSES",
    "SyncRequestExecutor",
    "classify_response",
    "decode_response",
]
