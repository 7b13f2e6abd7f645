"""Centralized error factory for hvclient.

Provides consistent error creation from HTTP responses and transport
exceptions for both the sync and async executors.
"""

from __future__ import annotations

import httpx
from pydantic import ValidationError

from ..errors import APIError, HVClientError, NetworkError, RequestTimeoutError
from ..http import CONTENT_TYPE_PROBLEM_JSON, media_type
from ..models import ProblemDetail

UNKNOWN_API_ERROR = "unknown API error"


class ErrorFactory:
    """Centralized error creation with consistent structure."""

    @staticmethod
    def from_http_response(response: httpx.Response) -> APIError:
        """Create an API error from a non-success HTTP response.

        HVCA error bodies are ``application/problem+json`` documents with a
        ``description`` member. Any other content type, or a body that
        doesn't parse, yields a generic description.

        Args:
            response: HTTP response whose body has already been read.

        Returns:
            APIError carrying the status code and description.
        """
        status = response.status_code

        if media_type(response) != CONTENT_TYPE_PROBLEM_JSON:
            return APIError(status, UNKNOWN_API_ERROR)

        try:
            problem = ProblemDetail.model_validate_json(response.content)
        except ValidationError:
            return APIError(status, UNKNOWN_API_ERROR)

        return APIError(status, problem.description)

    @staticmethod
    def from_transport_error(exc: httpx.TransportError) -> HVClientError:
        """Create client error from an httpx transport exception.

        Args:
            exc: Original exception.

        Returns:
            RequestTimeoutError for timeouts, NetworkError otherwise.
        """
        if isinstance(exc, httpx.TimeoutException):
            return RequestTimeoutError(f"Request timed out: {exc}", cause=exc)

        if isinstance(exc, httpx.ConnectError):
            return NetworkError(f"Connection failed: {exc}", cause=exc)

        return NetworkError(f"HTTP error: {exc}", cause=exc)
