"""Configuration for hvclient.

Uses Pydantic v2 for validation with sensible defaults. A configuration can
be supplied programmatically, loaded from a JSON file, or read from the
environment.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import InvalidConfigError

SUPPORTED_API_VERSIONS = frozenset({"v2"})


class RetryPolicy(BaseModel):
    """Retry budget and linear backoff for 503/202 responses."""

    model_config = ConfigDict(frozen=True)

    budget: Annotated[int, Field(ge=0, le=20)] = 5
    wait: Annotated[float, Field(ge=0, le=60)] = 1.0

    def get_delay(self, attempts_used: int) -> float:
        """Delay before the next attempt, growing linearly."""
        return self.wait * attempts_used


class TelemetryConfig(BaseModel):
    """OpenTelemetry and structured logging configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "hvclient"
    log_level: str = "INFO"


class PoolConfig(BaseModel):
    """Connection pool limits, sized for sustained concurrent use."""

    model_config = ConfigDict(frozen=True)

    max_connections: Annotated[int, Field(gt=0)] = 200
    max_keepalive_connections: Annotated[int, Field(ge=0)] = 100
    keepalive_expiry: Annotated[float, Field(gt=0)] = 90.0


class HVClientConfig(BaseModel):
    """Main configuration for the HVCA client."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    # Required
    url: str = Field(..., min_length=1)
    api_key: str = Field(..., min_length=1)
    api_secret: SecretStr

    # Mutual TLS
    cert_file: Path | None = None
    key_file: Path | None = None
    key_passphrase: SecretStr | None = None
    ca_file: Path | None = None
    insecure_skip_verify: bool = False

    # HTTP settings
    extra_headers: dict[str, str] = Field(default_factory=dict)
    timeout: Annotated[float, Field(gt=0, le=3600)] = 60.0
    connect_timeout: Annotated[float, Field(gt=0, le=300)] = 10.0

    # Session
    token_lifetime: Annotated[float, Field(gt=0)] = 540.0

    # Sub-configurations
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate scheme and API version of the service URL."""
        v = v.rstrip("/")
        if not v.startswith(("https://", "http://")):
            msg = f"URL must use http or https: {v}"
            raise ValueError(msg)

        version = v.rsplit("/", 1)[-1]
        if version not in SUPPORTED_API_VERSIONS:
            msg = f"unsupported HVCA version: {version}"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_client_certificate(self) -> Self:
        """mTLS certificate and key must be supplied together."""
        if (self.cert_file is None) != (self.key_file is None):
            msg = "cert_file and key_file must be provided together"
            raise ValueError(msg)
        return self

    @property
    def uses_tls(self) -> bool:
        """Whether the service URL is an HTTPS URL."""
        return self.url.startswith("https://")

    def with_overrides(self, **kwargs: Any) -> Self:
        """Create new config with overridden values."""
        data = self.model_dump(exclude_unset=True)
        data.update(kwargs)
        return self.__class__(**data)

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> Self:
        """Load configuration from a JSON file.

        Relative certificate and key paths resolve against the directory
        containing the configuration file. ``timeout`` is in seconds.
        """
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            msg = f"couldn't read configuration file {path}: {e}"
            raise InvalidConfigError(msg) from e
        except json.JSONDecodeError as e:
            msg = f"couldn't parse configuration file {path}: {e}"
            raise InvalidConfigError(msg) from e

        if not isinstance(raw, dict):
            msg = f"configuration file {path} must contain a JSON object"
            raise InvalidConfigError(msg)

        for key in ("cert_file", "key_file", "ca_file"):
            value = raw.get(key)
            if value:
                file_path = Path(value).expanduser()
                if not file_path.is_absolute():
                    file_path = path.parent / file_path
                raw[key] = file_path

        # Zero or absent timeout means the default.
        if not raw.get("timeout"):
            raw.pop("timeout", None)

        return cls._build(raw)

    @classmethod
    def from_env(cls, prefix: str = "HVCLIENT_") -> Self:
        """Create config from environment variables."""

        def get_env(key: str, default: Any = None) -> Any:
            return os.environ.get(f"{prefix}{key}", default)

        for required in ("URL", "API_KEY", "API_SECRET"):
            if not get_env(required):
                msg = f"{prefix}{required} environment variable is required"
                raise InvalidConfigError(msg, field=required.lower())

        data: dict[str, Any] = {
            "url": get_env("URL"),
            "api_key": get_env("API_KEY"),
            "api_secret": get_env("API_SECRET"),
            "cert_file": get_env("CERT_FILE"),
            "key_file": get_env("KEY_FILE"),
            "key_passphrase": get_env("KEY_PASSPHRASE"),
            "ca_file": get_env("CA_FILE"),
            "insecure_skip_verify": get_env("INSECURE_SKIP_VERIFY", "").lower()
            in {"1", "true", "yes"},
        }
        timeout = get_env("TIMEOUT")
        if timeout:
            data["timeout"] = timeout

        return cls._build({k: v for k, v in data.items() if v is not None})

    @classmethod
    def _build(cls, data: dict[str, Any]) -> Self:
        try:
            return cls(**data)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or None
            raise InvalidConfigError(
                f"invalid configuration: {first['msg']}",
                field=field,
            ) from e
