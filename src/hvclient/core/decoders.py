"""Response decoders.

Pure functions mapping a fully read HVCA response to typed values. Body
problems raise SerializationError; header problems raise HeaderError, so
callers can tell which part of a response was malformed.
"""

from __future__ import annotations

import re
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from ..errors import HeaderError, SerializationError
from ..models import ClaimAssertionInfo, Counter, Page
from .operation import Decoder

M = TypeVar("M", bound=BaseModel)

LOCATION_HEADER = "Location"
TOTAL_COUNT_HEADER = "Total-Count"

_STRING_LIST = TypeAdapter(list[str])
_COUNTER = TypeAdapter(Counter)
_CLAIM_ASSERTION = TypeAdapter(ClaimAssertionInfo)
_DECIMAL = re.compile(r"[+-]?[0-9]+")


def _validate(adapter: TypeAdapter[Any], response: httpx.Response) -> Any:
    try:
        return adapter.validate_json(response.content)
    except ValidationError as e:
        raise SerializationError(f"failed to decode response body: {e}", cause=e) from e


def header_value(response: httpx.Response, name: str) -> str:
    """First value of a response header.

    Raises:
        HeaderError: If the header is absent.
    """
    values = response.headers.get_list(name)
    if not values:
        raise HeaderError(f"no values in response for header {name!r}", header=name)
    return values[0]


def int_header(response: httpx.Response, name: str) -> int:
    """Integer value of a response header.

    Raises:
        HeaderError: If the header is absent or not a base-10 integer.
    """
    value = header_value(response, name).strip()
    if not _DECIMAL.fullmatch(value):
        raise HeaderError(
            f"invalid integer value {value!r} for header {name!r}", header=name
        )
    return int(value)


def location_id(response: httpx.Response) -> str:
    """Identifier of a created resource: the last path segment of ``Location``.

    Raises:
        HeaderError: If the header is absent or has no final path segment.
    """
    location = header_value(response, LOCATION_HEADER)
    path = httpx.URL(location).path if "://" in location else location.split("?", 1)[0]
    identifier = path.rstrip("/").rsplit("/", 1)[-1]
    if not identifier:
        raise HeaderError(
            f"no resource identifier in header {LOCATION_HEADER!r}: {location!r}",
            header=LOCATION_HEADER,
        )
    return identifier


def decode_counter(response: httpx.Response) -> int:
    """Value of a ``{"value": N}`` body."""
    return _validate(_COUNTER, response).value


def decode_string_list(response: httpx.Response) -> list[str]:
    """A bare JSON array of strings."""
    return _validate(_STRING_LIST, response)


def decode_model(model: type[M]) -> Decoder[M]:
    """Decoder for a single resource of type ``model``."""
    adapter = TypeAdapter(model)

    def decode(response: httpx.Response) -> M:
        return _validate(adapter, response)

    return decode


def decode_page(model: type[M]) -> Decoder[Page[M]]:
    """Decoder for a paginated listing of ``model`` resources.

    The body is a JSON array of resources; the total number of results is
    carried in the ``Total-Count`` header.
    """
    adapter = TypeAdapter(list[model])  # type: ignore[valid-type]

    def decode(response: httpx.Response) -> Page[M]:
        items = _validate(adapter, response)
        total = int_header(response, TOTAL_COUNT_HEADER)
        return Page[model](items=items, total=total)  # type: ignore[valid-type]

    return decode


def decode_claim_assertion(response: httpx.Response) -> ClaimAssertionInfo:
    """Claim assertion body, with its ID taken from the ``Location`` header."""
    info = _validate(_CLAIM_ASSERTION, response)
    return info.model_copy(update={"id": location_id(response)})

