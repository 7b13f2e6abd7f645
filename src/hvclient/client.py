"""Synchronous HVCA client."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, Self, TypeVar

import httpx

from .config import HVClientConfig
from .core import endpoints
from .core.authenticator import SessionState
from .core.http_executor import SyncRequestExecutor
from .core.operation import Operation
from .http import create_http_client
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


class HVClient:
    """Synchronous HVCA client.

    Logs in lazily on first use and keeps the session alive transparently.
    One instance may be shared between threads.

    Every API method accepts an optional ``timeout`` in seconds bounding the
    whole call, including any login, retries and backoff.
    """

    def __init__(
        self,
        config: HVClientConfig,
        *,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize sync client.

        Args:
            config: Client configuration. An explicitly set ``telemetry``
                section is applied process-wide before the client is built.
            http_client: Pre-built HTTP client; one is created from ``config``
                when omitted. The client is closed with this instance either way.
            sleep: Blocking sleep used for retry backoff.
        """
        self.config = config
        if "telemetry" in config.model_fields_set:
            configure_telemetry(config.telemetry)
        self._http = http_client or create_http_client(config)
        self._executor = SyncRequestExecutor(
            self._http,
            LoginRequest(api_key=config.api_key, api_secret=config.api_secret),
            retry=config.retry,
            token_lifetime=config.token_lifetime,
            extra_headers=config.extra_headers,
            request_timeout=config.timeout,
            sleep=sleep,
        )

    @classmethod
    def connect(
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
            client.login(timeout=timeout)
        except BaseException:
            client.close()
            raise
        return client

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        self._http.close()

    @property
    def default_timeout(self) -> float:
        """Configured per-request timeout in seconds."""
        return self.config.timeout

    @property
    def session_state(self) -> SessionState:
        return self._executor.authenticator.state

    def login(self, *, timeout: float | None = None) -> None:
        """Log in now, replacing any held token.

        Raises:
            LoginError: If the login call fails.
            RequestTimeoutError: If ``timeout`` elapses first.
        """
        deadline = None if timeout is None else self._executor.clock() + timeout
        self._executor.authenticator.login(deadline=deadline)

    def execute(self, operation: Operation[T], *, timeout: float | None = None) -> T:
        """Execute an arbitrary operation with login and retry handling."""
        return self._executor.execute(operation, timeout=timeout)

    # Certificates

    def certificate_request(
        self, request: CertificateRequest, *, timeout: float | None = None
    ) -> str:
        """Request a new certificate.

        Returns:
            Serial number of the issued certificate.
        """
        return self.execute(endpoints.certificate_request(request), timeout=timeout)

    def certificate_retrieve(
        self, serial_number: str, *, timeout: float | None = None
    ) -> CertInfo:
        """Retrieve the certificate with the given serial number."""
        return self.execute(endpoints.certificate_retrieve(serial_number), timeout=timeout)

    def certificate_revoke(
        self, serial_number: str, *, timeout: float | None = None
    ) -> None:
        """Revoke the certificate with the given serial number."""
        self.execute(endpoints.certificate_revoke(serial_number), timeout=timeout)

    # Account information

    def trust_chain(self, *, timeout: float | None = None) -> list[str]:
        """PEM-encoded certificates in the issuing CA's chain of trust."""
        return self.execute(endpoints.trust_chain(), timeout=timeout)

    def policy(self, *, timeout: float | None = None) -> Policy:
        """Validation policy of the calling account."""
        return self.execute(endpoints.policy(), timeout=timeout)

    def counter_certs_issued(self, *, timeout: float | None = None) -> int:
        return self.execute(endpoints.counter_certs_issued(), timeout=timeout)

    def counter_certs_revoked(self, *, timeout: float | None = None) -> int:
        return self.execute(endpoints.counter_certs_revoked(), timeout=timeout)

    def quota_issuance(self, *, timeout: float | None = None) -> int:
        """Remaining certificate issuance quota."""
        return self.execute(endpoints.quota_issuance(), timeout=timeout)

    # Statistics

    def stats_expiring(
        self,
        page: int = 1,
        per_page: int | None = None,
        not_before: datetime | None = None,
        not_after: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> Page[CertMeta]:
        return self.execute(
            endpoints.stats_expiring(page, per_page, not_before, not_after),
            timeout=timeout,
        )

    def stats_issued(
        self,
        page: int = 1,
        per_page: int | None = None,
        not_before: datetime | None = None,
        not_after: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> Page[CertMeta]:
        return self.execute(
            endpoints.stats_issued(page, per_page, not_before, not_after),
            timeout=timeout,
        )

    def stats_revoked(
        self,
        page: int = 1,
        per_page: int | None = None,
        not_before: datetime | None = None,
        not_after: datetime | None = None,
        *,
        timeout: float | None = None,
    ) -> Page[CertMeta]:
        return self.execute(
            endpoints.stats_revoked(page, per_page, not_before, not_after),
            timeout=timeout,
        )

    # Domain claims

    def claims_domains(
        self,
        page: int = 1,
        per_page: int | None = None,
        status: ClaimStatus = ClaimStatus.PENDING,
        *,
        timeout: float | None = None,
    ) -> Page[Claim]:
        return self.execute(
            endpoints.claims_domains(page, per_page, status), timeout=timeout
        )

    def claim_submit(
        self, domain: str, *, timeout: float | None = None
    ) -> ClaimAssertionInfo:
        """Submit a domain claim.

        Returns:
            The token to place in DNS, the deadline for doing so, and the claim ID.
        """
        return self.execute(endpoints.claim_submit(domain), timeout=timeout)

    def claim_retrieve(self, claim_id: str, *, timeout: float | None = None) -> Claim:
        return self.execute(endpoints.claim_retrieve(claim_id), timeout=timeout)

    def claim_delete(self, claim_id: str, *, timeout: float | None = None) -> None:
        self.execute(endpoints.claim_delete(claim_id), timeout=timeout)

    def claim_dns(self, claim_id: str, *, timeout: float | None = None) -> bool:
        """Request assertion of domain control using DNS.

        Returns:
            True if domain control was verified, False if the assertion
            request was created and is still pending.
        """
        return self.execute(endpoints.claim_dns(claim_id), timeout=timeout)

    def claim_reassert(
        self, claim_id: str, *, timeout: float | None = None
    ) -> ClaimAssertionInfo:
        """Reassert a claim whose previous assert-by time has passed."""
        return self.execute(endpoints.claim_reassert(claim_id), timeout=timeout)
