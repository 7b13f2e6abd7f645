"""Error classes for the HVCA client.

Structured error hierarchy with error codes. API failures carry the HTTP
status code and the server-supplied description, and compare by value so
callers can match them against the well-known sentinels below.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for hvclient."""

    # API errors (1xxx)
    API_ERROR = "API_1001"
    UNEXPECTED_STATUS = "API_1002"

    # Authentication errors (2xxx)
    LOGIN_FAILED = "AUTH_2001"

    # Protocol errors (3xxx)
    SERIALIZATION_ERROR = "PROTO_3001"
    CONTENT_TYPE_MISMATCH = "PROTO_3002"
    HEADER_ERROR = "PROTO_3003"

    # Network errors (4xxx)
    NETWORK_ERROR = "NET_4001"
    TIMEOUT_ERROR = "NET_4002"

    # Configuration errors (5xxx)
    INVALID_CONFIG = "CFG_5001"


class HVClientError(Exception):
    """Base error for hvclient with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if isinstance(code, str) else code.value
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class APIError(HVClientError):
    """Error returned by the HVCA HTTP API.

    Two API errors are equal when their status code and description are
    equal, so a caught error can be compared directly against a sentinel
    such as ``ERR_TOKEN_EXPIRED``.
    """

    def __init__(self, status_code: int, description: str) -> None:
        super().__init__(
            f"{status_code}: {description}",
            ErrorCode.API_ERROR,
            status_code=status_code,
            details={"description": description},
        )
        self.description = description

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, APIError):
            return NotImplemented
        return (self.status_code, self.description) == (
            other.status_code,
            other.description,
        )

    def __hash__(self) -> int:
        return hash((self.status_code, self.description))

    def __repr__(self) -> str:
        return (
            f"APIError(status_code={self.status_code!r}, "
            f"description={self.description!r})"
        )


ERR_TOKEN_EXPIRED = APIError(401, "Token expired")
ERR_SERVICE_BUSY = APIError(503, "Service busy, please retry later")
ERR_IN_PROGRESS = APIError(202, "Operation in Progress")


class UnexpectedStatusError(HVClientError):
    """A 2xx response carried a status the operation does not define."""

    def __init__(self, status_code: int) -> None:
        super().__init__(
            f"unexpected status code: {status_code}",
            ErrorCode.UNEXPECTED_STATUS,
            status_code=status_code,
        )


class LoginError(HVClientError):
    """Login to the HVCA server failed."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(
            f"failed to login: {cause}",
            ErrorCode.LOGIN_FAILED,
            status_code=getattr(cause, "status_code", None),
            details={"cause": str(cause)},
        )
        self.cause = cause
        self.__cause__ = cause


class SerializationError(HVClientError):
    """A request body could not be encoded or a response body decoded."""

    def __init__(
        self,
        message: str,
        *,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.SERIALIZATION_ERROR,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class ContentTypeError(HVClientError):
    """Response media type differs from the one the operation expects."""

    def __init__(self, got: str, expected: str) -> None:
        super().__init__(
            f"got HTTP response content type {got!r}, expected {expected!r}",
            ErrorCode.CONTENT_TYPE_MISMATCH,
            details={"got": got, "expected": expected},
        )
        self.got = got
        self.expected = expected


class HeaderError(HVClientError):
    """A response header is missing or malformed."""

    def __init__(self, message: str, *, header: str) -> None:
        super().__init__(
            message,
            ErrorCode.HEADER_ERROR,
            details={"header": header},
        )
        self.header = header


class NetworkError(HVClientError):
    """Network request failed."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.NETWORK_ERROR,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class RequestTimeoutError(HVClientError):
    """Request deadline passed or the request was timed out."""

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        timeout_seconds: float | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.TIMEOUT_ERROR,
            details={"timeout_seconds": timeout_seconds} if timeout_seconds else None,
        )
        self.__cause__ = cause


class InvalidConfigError(HVClientError):
    """Invalid client configuration."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_CONFIG,
            details={"field": field} if field else None,
        )
