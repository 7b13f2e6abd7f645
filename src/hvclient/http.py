"""HTTP transport for hvclient.

Builds pooled sync and async httpx clients with optional mutual TLS, and
provides the small response helpers shared by the executors and decoders.
"""

from __future__ import annotations

import ssl
from typing import TYPE_CHECKING

import httpx

from .errors import ContentTypeError, InvalidConfigError

if TYPE_CHECKING:
    from .config import HVClientConfig

USER_AGENT = "hvclient/1.0.0 Python"

AUTHORIZATION_HEADER = "Authorization"
CONTENT_TYPE_HEADER = "Content-Type"
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_PROBLEM_JSON = "application/problem+json"


def build_ssl_context(config: HVClientConfig) -> ssl.SSLContext:
    """Build the TLS context for the configured server and client certificate.

    Args:
        config: Client configuration.

    Returns:
        SSL context for httpx.

    Raises:
        InvalidConfigError: If a CA, certificate or key file can't be loaded.
    """
    try:
        if config.ca_file is not None:
            context = ssl.create_default_context(cafile=str(config.ca_file))
        else:
            context = ssl.create_default_context()

        if config.insecure_skip_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        if config.cert_file is not None and config.key_file is not None:
            password = (
                config.key_passphrase.get_secret_value()
                if config.key_passphrase
                else None
            )
            context.load_cert_chain(
                certfile=str(config.cert_file),
                keyfile=str(config.key_file),
                password=password,
            )
    except (OSError, ssl.SSLError) as e:
        msg = f"couldn't load TLS material: {e}"
        raise InvalidConfigError(msg) from e

    return context


def _client_kwargs(config: HVClientConfig) -> dict[str, object]:
    kwargs: dict[str, object] = {
        "base_url": config.url,
        "timeout": httpx.Timeout(
            connect=config.connect_timeout,
            read=config.timeout,
            write=config.timeout,
            pool=config.timeout,
        ),
        "limits": httpx.Limits(
            max_connections=config.pool.max_connections,
            max_keepalive_connections=config.pool.max_keepalive_connections,
            keepalive_expiry=config.pool.keepalive_expiry,
        ),
        "headers": {
            "User-Agent": USER_AGENT,
            "Accept": f"{CONTENT_TYPE_JSON}, {CONTENT_TYPE_PROBLEM_JSON}",
        },
        # HVCA never redirects; a 3xx is classified as an API error.
        "follow_redirects": False,
    }
    if config.uses_tls:
        kwargs["verify"] = build_ssl_context(config)
    return kwargs


def create_http_client(config: HVClientConfig) -> httpx.Client:
    """Create configured sync HTTP client.

    Args:
        config: Client configuration.

    Returns:
        Configured httpx.Client.
    """
    return httpx.Client(**_client_kwargs(config))  # type: ignore[arg-type]


def create_async_http_client(config: HVClientConfig) -> httpx.AsyncClient:
    """Create configured async HTTP client.

    Args:
        config: Client configuration.

    Returns:
        Configured httpx.AsyncClient.
    """
    return httpx.AsyncClient(**_client_kwargs(config))  # type: ignore[arg-type]


def media_type(response: httpx.Response) -> str:
    """Media type of the response, without parameters, lower-cased."""
    value = response.headers.get(CONTENT_TYPE_HEADER, "")
    return value.split(";", 1)[0].strip().lower()


def verify_content_type(response: httpx.Response, expected: str) -> None:
    """Raise ContentTypeError unless the response media type starts with ``expected``."""
    got = media_type(response)
    if not got.startswith(expected):
        raise ContentTypeError(got, expected)
