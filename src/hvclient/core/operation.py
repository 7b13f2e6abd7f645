"""Data-driven description of one HVCA API call."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx
from pydantic import BaseModel
from pydantic_core import PydanticSerializationError

from ..errors import SerializationError

T = TypeVar("T")

Decoder = Callable[[httpx.Response], T]


@dataclass(frozen=True, slots=True)
class JSONBody:
    """A request body, encoded to JSON when the request is built."""

    payload: Any

    def encode(self) -> bytes:
        """Serialize the payload.

        Raises:
            SerializationError: If the payload can't be represented as JSON.
        """
        try:
            if isinstance(self.payload, BaseModel):
                data = self.payload.model_dump(mode="json", exclude_none=True)
            else:
                data = self.payload
            return json.dumps(data, separators=(",", ":"), allow_nan=False).encode()
        except (TypeError, ValueError, PydanticSerializationError) as e:
            raise SerializationError(f"failed to encode request body: {e}", cause=e) from e


@dataclass(frozen=True, slots=True)
class Operation(Generic[T]):
    """One logical API call: where, how, with what, and how to read the answer.

    When ``decoder`` is None the executor returns the (fully read) response
    itself, for callers that only need its status or headers. The response
    content type is checked before decoding unless ``json_response`` is False.
    """

    method: str
    path: str
    body: JSONBody | None = None
    decoder: Decoder[T] | None = None
    params: Mapping[str, str | int] = field(default_factory=dict)
    is_login: bool = False
    json_response: bool = True
    name: str = ""

    def __post_init__(self) -> None:
        if not self.path and not self.is_login:
            msg = "operation path must not be empty"
            raise ValueError(msg)
        if not self.name:
            object.__setattr__(self, "name", f"{self.method} {self.path}")

    @property
    def has_body(self) -> bool:
        return self.body is not None
