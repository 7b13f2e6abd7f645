"""Unit tests for the transport helpers and operation descriptors."""

from __future__ import annotations

import asyncio
import math
from pathlib import Path

import httpx
import pytest

from hvclient.config import HVClientConfig, PoolConfig
from hvclient.core.authenticator import login_operation
from hvclient.core.operation import JSONBody, Operation
from hvclient.errors import ContentTypeError, InvalidConfigError, SerializationError
from hvclient.http import (
    build_ssl_context,
    create_async_http_client,
    create_http_client,
    media_type,
    verify_content_type,
)
from hvclient.models import LoginRequest


class TestOperation:
    """Tests for Operation and JSONBody."""

    def test_empty_path_rejected(self) -> None:
        with pytest.raises(ValueError):
            Operation("GET", "")

    def test_default_name(self) -> None:
        assert Operation("GET", "/trustchain").name == "GET /trustchain"

    def test_login_operation(self) -> None:
        op = login_operation(LoginRequest(api_key="k", api_secret="s"))

        assert op.is_login
        assert op.has_body
        assert (op.method, op.path) == ("POST", "/login")

    def test_body_encodes_compact_json(self) -> None:
        assert JSONBody({"a": [1, 2]}).encode() == b'{"a":[1,2]}'

    @pytest.mark.parametrize("payload", [{"a": object()}, {"a": math.nan}])
    def test_unencodable_body(self, payload: object) -> None:
        with pytest.raises(SerializationError):
            JSONBody(payload).encode()


class TestContentType:
    """Tests for content type helpers."""

    def test_media_type_strips_parameters(self) -> None:
        r = httpx.Response(200, headers={"Content-Type": "Application/JSON; charset=utf-8"})
        assert media_type(r) == "application/json"

    def test_verify_accepts_matching_type(self) -> None:
        r = httpx.Response(200, headers={"Content-Type": "application/json"})
        verify_content_type(r, "application/json")

    def test_verify_rejects_other_type(self) -> None:
        r = httpx.Response(200, headers={"Content-Type": "text/html"})

        with pytest.raises(ContentTypeError) as exc_info:
            verify_content_type(r, "application/json")

        assert exc_info.value.got == "text/html"


class TestClients:
    """Tests for HTTP client construction."""

    def test_sync_client_settings(self) -> None:
        config = HVClientConfig(
            url="http://hvca.test/v2",
            api_key="k",
            api_secret="s",
            timeout=30,
            pool=PoolConfig(max_connections=10),
        )

        with create_http_client(config) as client:
            assert str(client.base_url) == "http://hvca.test/v2/"
            assert client.timeout.read == 30
            assert client.headers["User-Agent"].startswith("hvclient/")
            assert not client.follow_redirects

    def test_async_client(self) -> None:
        config = HVClientConfig(url="https://hvca.test/v2", api_key="k", api_secret="s")
        client = create_async_http_client(config)

        assert str(client.base_url) == "https://hvca.test/v2/"
        asyncio.run(client.aclose())

    def test_missing_tls_material(self, tmp_path: Path) -> None:
        config = HVClientConfig(
            url="https://hvca.test/v2",
            api_key="k",
            api_secret="s",
            cert_file=tmp_path / "missing.pem",
            key_file=tmp_path / "missing.key",
        )

        with pytest.raises(InvalidConfigError):
            build_ssl_context(config)

    def test_insecure_context(self) -> None:
        config = HVClientConfig(
            url="https://hvca.test/v2",
            api_key="k",
            api_secret="s",
            insecure_skip_verify=True,
        )

        context = build_ssl_context(config)

        assert not context.check_hostname
