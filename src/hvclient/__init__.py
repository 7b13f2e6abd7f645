"""Python client for the GlobalSign HVCA (Atlas) certificate issuance API."""

from .async_client import AsyncHVClient
from .client import HVClient
from .config import HVClientConfig, PoolConfig, RetryPolicy, TelemetryConfig
from .core.operation import JSONBody, Operation
from .errors import (
    ERR_IN_PROGRESS,
    ERR_SERVICE_BUSY,
    ERR_TOKEN_EXPIRED,
    APIError,
    ContentTypeError,
    ErrorCode,
    HeaderError,
    HVClientError,
    InvalidConfigError,
    LoginError,
    NetworkError,
    RequestTimeoutError,
    SerializationError,
    UnexpectedStatusError,
)
from .models import (
    DN,
    SAN,
    CertificateRequest,
    CertInfo,
    CertMeta,
    CertStatus,
    Claim,
    ClaimAssertionInfo,
    ClaimLogEntry,
    ClaimLogEntryStatus,
    ClaimStatus,
    OIDAndString,
    Page,
    Policy,
    Signature,
    Validity,
    ValidityPolicy,
)
from .telemetry import configure_telemetry

__all__ = [
    # Clients
    "AsyncHVClient",
    "HVClient",
    # Configuration
    "HVClientConfig",
    "PoolConfig",
    "RetryPolicy",
    "TelemetryConfig",
    "configure_telemetry",
    # Operations
    "JSONBody",
    "Operation",
    # Errors
    "APIError",
    "ContentTypeError",
    "ERR_IN_PROGRESS",
    "ERR_SERVICE_BUSY",
    "ERR_TOKEN_EXPIRED",
    "ErrorCode",
    "HVClientError",
    "HeaderError",
    "InvalidConfigError",
    "LoginError",
    "NetworkError",
    "RequestTimeoutError",
    "SerializationError",
    "UnexpectedStatusError",
    # Models
    "CertInfo",
    "CertMeta",
    "CertStatus",
    "CertificateRequest",
    "Claim",
    "ClaimAssertionInfo",
    "ClaimLogEntry",
    "ClaimLogEntryStatus",
    "ClaimStatus",
    "DN",
    "OIDAndString",
    "Page",
    "Policy",
    "SAN",
    "Signature",
    "Validity",
    "ValidityPolicy",
]

__version__ = "1.0.0"
