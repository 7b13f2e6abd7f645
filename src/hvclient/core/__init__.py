"""Core request machinery shared by the sync and async clients."""

from .authenticator import AsyncAuthenticator, Authenticator, SessionState
from .http_executor import (
    AsyncRequestExecutor,
    ResponseClass,
    SyncRequestExecutor,
    classify_response,
)
from .operation import JSONBody, Operation
from .token_store import ReadWriteLock, TokenStore

__all__ = [
    "AsyncAuthenticator",
    "AsyncRequestExecutor",
    "Authenticator",
    "JSONBody",
    "Operation",
    "ReadWriteLock",
    "ResponseClass",
    "SessionState",
    "SyncRequestExecutor",
    "TokenStore",
    "classify_response",
]
