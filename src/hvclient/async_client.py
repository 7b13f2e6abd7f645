"""Asynchronous HVCA client."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Self, TypeVar

import httpx

from .config import HVClientConfig
from .core import endpoints
from .core.authenticator import SessionState
from .core.http_executor import AsyncRequestExecutor
from .core.operation import Operation
from .errors import RequestTimeoutError
from .http import create_async_http_client
from .models import (
    CertificateRequest,
    CertInfo,
    CertMeta,
    Claim,
    ClaimAssertionInfo,
    ClaimStatus,
    LoginRequest,
    Page,
    Policy,
)
from .telemetry import configure_telemetry

T = TypeVar("T")


class AsyncHVClient:
    """Asynchronous HVCA client.

    One instance may be shared between tasks on the same event loop. Every
    API method accepts an optional ``timeout`` in seconds; cancelling the
    awaiting task aborts the call as well.
    """

    def __init__(
        self,
        config: HVClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize async client.

        Args:
            config: Client configuration. An explicitly set ``telemetry``
                section is applied process-wide before the client is built.
            http_client: Pre-built async HTTP client; one is created from
                ``config`` when omitted. It is closed with this instance.
            sleep: Awaitable sleep used for retry backoff.
        """
        self.config = config
        if "telemetry" in config.model_fields_set:
            configure_telemetry(config.telemetry)
        self._http = http_client or create_async_http_client(config)
        self._executor = AsyncRequestExecutor(
            self._http,
            LoginRequest(api_key=config.api_key, api_secret=config.api_secret),
            retry=config.retry,
            token_lifetime=config.token_lifetime,
            extra_headers=config.extra_headers,
            sleep=sleep,
        )

    @classmethod
    async def connect(
        cls,
        config: HVClientConfig,
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> Self:
        """Create a client and log in immediately.

        Raises:
            LoginError: If the initial login fails. The HTTP client is closed.
        """
        client = cls(config, **kwargs)
        try:
            await client.login(timeout=timeout)
        except BaseException:
            await client.aclose()
            raise
        return client

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._http.aclose()

    @property
    def default_timeout(self) -> float:
        """Configured per-request timeout in seconds."""
        return self.config.timeout

    @property
    def session_state(self) -> SessionState:
        return self._executor.authenticator.state

    async def login(self, *, timeout: float | None = None) -> None:
        """Log in now, replacing any held token.

        Raises:
            LoginError: If the login call fails.
            RequestTimeoutError: If ``timeout`` elapses first.
        """
        if timeout is None:
            await self._executor.authenticator.login()
            return
        try:
            async with asyncio.timeout(timeout):
                await self._executor.authenticator.login()
        except TimeoutError as e:
            raise RequestTimeoutError(
                "login timed out", timeout_seconds=timeout, cause=e
            ) from e

    async def execute(
        self, operation: Operation[T], *, timeout: float | None = None
    ) -> T:
        """Execute an arbitrary operation with login and retry handling."""
        return await self._executor.execute(operation, timeout=timeout)

    # Certificates

    async def certificate_request(
        self, request: CertificateRequest, *, timeout: float | None = None
    ) -> str:
        """Request a new certificate, returning its serial number."""
        return await self.execute(
            endpoints.certificate_request(request), timeout=timeout
        )

    async def certificate_retrieve(
        self, serial_number: str, *, timeout: float | None = None
    ) -> CertInfo:
        return await self.execute(
            endpoints.certificate_retrieve(serial_number), timeout=timeout
        )

    async def certificate_revoke(
        self, serial_number: str, *, timeout: float | None = None
    ) -> None:
        await self.execute(endpoints.certificate_revoke(serial_number), timeout=timeout)

    # Account information

    async def trust_chain(self, *, timeout: float | None = None) -> list[str]:
        return await self.execute(endpoints.trust_chain(), timeout=timeout)

    async def policy(self, *, timeout: float | None = None) -> Policy:
        return await self.execute(endpoints.policy(), timeout=timeout)

    async def counter_certs_issued(self, *, timeout: float | None = None) -> int:
        return await self.execute(endpoints.counter_certs_issued(), timeout=timeout)

    async def counter_certs_revoked(self, *, timeout: float | None = None) -> int:
        return await self.execute(endpoints.counter_certs_revoked(), timeout=timeout)

    async def quota_issuance(self, *, timeout: float | None = None) -> int:
        return await self.execute(endpoints.quota_issuance(), timeout=timeout)

    # Statistics

    async def stats_expiring(
        self,
        page: int = 1,
        per_page: int | None = None,
        not_before: datetime | None = None,
        not_after: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> Page[CertMeta]:
        return await self.execute(
            endpoints.stats_expiring(page, per_page, not_before, not_after),
            timeout=timeout,
        )

    async def stats_issued(
        self,
        page: int = 1,
        per_page: int | None = None,
        not_before: datetime | None = None,
        not_after: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> Page[CertMeta]:
        return await self.execute(
            endpoints.stats_issued(page, per_page, not_before, not_after),
            timeout=timeout,
        )

    async def stats_revoked(
        self,
        page: int = 1,
        per_page: int | None = None,
        not_before: datetime | None = None,
        not_after: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> Page[CertMeta]:
        return await self.execute(
            endpoints.stats_revoked(page, per_page, not_before, not_after),
            timeout=timeout,
        )

    # Domain claims

    async def claims_domains(
        self,
        page: int = 1,
        per_page: int | None = None,
        status: ClaimStatus = ClaimStatus.PENDING,
        *,
        timeout: float | None = None,
    ) -> Page[Claim]:
        return await self.execute(
            endpoints.claims_domains(page, per_page, status), timeout=timeout
        )

    async def claim_submit(
        self, domain: str, *, timeout: float | None = None
    ) -> ClaimAssertionInfo:
        return await self.execute(endpoints.claim_submit(domain), timeout=timeout)

    async def claim_retrieve(
        self, claim_id: str, *, timeout: float | None = None
    ) -> Claim:
        return await self.execute(endpoints.claim_retrieve(claim_id), timeout=timeout)

    async def claim_delete(self, claim_id: str, *, timeout: float | None = None) -> None:
        await self.execute(endpoints.claim_delete(claim_id), timeout=timeout)

    async def claim_dns(self, claim_id: str, *, timeout: float | None = None) -> bool:
        """Request assertion of domain control using DNS.

        Returns:
            True if domain control was verified, False if still pending.
        """
        return await self.execute(endpoints.claim_dns(claim_id), timeout=timeout)

    async def claim_reassert(
        self, claim_id: str, *, timeout: float | None = None
    ) -> ClaimAssertionInfo:
        return await self.execute(endpoints.claim_reassert(claim_id), timeout=timeout)
