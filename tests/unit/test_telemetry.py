"""Unit tests for telemetry configuration."""

from __future__ import annotations

import httpx
import pytest
import structlog
from opentelemetry import trace

from conftest import FakeHVCA, Reply, problem
from hvclient import HVClient, telemetry
from hvclient.config import HVClientConfig, TelemetryConfig

ISSUED = "/counters/certificates/issued"


@pytest.fixture(autouse=True)
def restore_telemetry(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(telemetry, "_tracer", None)
    monkeypatch.setattr(telemetry, "_logger", None)
    yield
    structlog.reset_defaults()


class TestTelemetry:
    """Tests for telemetry helpers."""

    def test_disabled_uses_noop_tracer(self) -> None:
        telemetry.configure_telemetry(TelemetryConfig(enabled=False))

        assert isinstance(telemetry.get_tracer(), trace.NoOpTracer)

    def test_enabled_configures_json_logging(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        telemetry.configure_telemetry(
            TelemetryConfig(service_name="hvclient-test", log_level="WARNING")
        )
        logger = telemetry.get_logger()

        logger.info("hidden")
        logger.warning("shown", attempt=2)

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert '"attempt": 2' in out

    def test_secrets_are_redacted(self, capsys: pytest.CaptureFixture[str]) -> None:
        telemetry.configure_telemetry(TelemetryConfig())

        telemetry.get_logger().info("login", api_secret="s3cret", api_key="k")

        out = capsys.readouterr().out
        assert "s3cret" not in out
        assert telemetry.REDACTED in out

    def test_trace_operation_reraises(self) -> None:
        with pytest.raises(RuntimeError):
            with telemetry.trace_operation("hvca_request", attributes={"attempt": 1}):
                raise RuntimeError("boom")


class TestClientTelemetry:
    """Tests for telemetry settings carried on a client configuration."""

    def make_client(self, fake: FakeHVCA, config: HVClientConfig) -> HVClient:
        http = httpx.Client(base_url=config.url, transport=fake.transport())
        return HVClient(config, http_client=http, sleep=lambda _: None)

    def test_disabled_section_applied_on_construction(
        self, fake: FakeHVCA, config: HVClientConfig
    ) -> None:
        quiet = config.with_overrides(telemetry=TelemetryConfig(enabled=False))

        with self.make_client(fake, quiet):
            assert isinstance(telemetry.get_tracer(), trace.NoOpTracer)

    def test_log_level_filters_client_events(
        self,
        fake: FakeHVCA,
        config: HVClientConfig,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        fake.on(ISSUED, problem(503, "Service busy, please retry later"))
        fake.always(ISSUED, Reply(200, {"value": 1}))
        errors_only = config.with_overrides(telemetry=TelemetryConfig(log_level="ERROR"))

        with self.make_client(fake, errors_only) as client:
            assert client.counter_certs_issued() == 1

        assert "retrying" not in capsys.readouterr().out

    def test_retry_warning_logged_at_default_level(
        self,
        fake: FakeHVCA,
        config: HVClientConfig,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        fake.on(ISSUED, problem(503, "Service busy, please retry later"))
        fake.always(ISSUED, Reply(200, {"value": 1}))
        verbose = config.with_overrides(telemetry=TelemetryConfig(log_level="INFO"))

        with self.make_client(fake, verbose) as client:
            client.counter_certs_issued()

        out = capsys.readouterr().out
        assert "retrying" in out
        assert "test-api-secret" not in out

    def test_unset_section_leaves_process_settings(
        self, fake: FakeHVCA, config: HVClientConfig
    ) -> None:
        with self.make_client(fake, config):
            pass

        assert telemetry._tracer is None
