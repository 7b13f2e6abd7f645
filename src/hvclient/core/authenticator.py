"""HVCA login handshake and re-login coordination.

Each client logs in with its API key and secret and then reuses the returned
bearer token for every call. The token is refreshed pre-emptively once it is
older than ``token_lifetime`` (set below the server's documented ten minutes),
and unconditionally whenever the server rejects it with a 401.

Two locks are involved. The token store's read/write lock guards the token
itself; the login lock here serializes only the decision to log in, so that
when many concurrent calls discover an expired token at once exactly one of
them logs in while the others wait and then reuse the new token.
"""

from __future__ import annotations

import asyncio
import threading
from enum import StrEnum
from typing import TYPE_CHECKING

from ..errors import HVClientError, LoginError, RequestTimeoutError
from ..models import LoginRequest, LoginResponse
from ..telemetry import get_logger, login_span
from .decoders import decode_model
from .operation import JSONBody, Operation

if TYPE_CHECKING:
    from .http_executor import AsyncRequestExecutor, SyncRequestExecutor
    from .token_store import TokenStore

LOGIN_PATH = "/login"

DEFAULT_TOKEN_LIFETIME = 540.0


class SessionState(StrEnum):
    """Login state of a client session."""

    LOGGED_OUT = "logged_out"
    LOGGING_IN = "logging_in"
    LOGGED_IN = "logged_in"


def login_operation(credentials: LoginRequest) -> Operation[LoginResponse]:
    """The POST /login call for the given credentials."""
    return Operation(
        "POST",
        LOGIN_PATH,
        body=JSONBody(credentials),
        decoder=decode_model(LoginResponse),
        is_login=True,
        name="login",
    )


def _login_failure(error: BaseException) -> BaseException:
    # Timeouts surface unchanged so callers see a deadline error, not a login error.
    if isinstance(error, HVClientError) and not isinstance(error, RequestTimeoutError):
        return LoginError(error)
    return error


class _AuthenticatorBase:
    def __init__(
        self,
        credentials: LoginRequest,
        token_store: TokenStore,
        *,
        token_lifetime: float = DEFAULT_TOKEN_LIFETIME,
    ) -> None:
        self._operation = login_operation(credentials)
        self._token_store = token_store
        self._token_lifetime = token_lifetime
        self._logins_in_flight = 0
        self._logger = get_logger()

    @property
    def token_lifetime(self) -> float:
        return self._token_lifetime

    @property
    def state(self) -> SessionState:
        """Current session state."""
        if self._logins_in_flight:
            return SessionState.LOGGING_IN
        if self._token_store.read():
            return SessionState.LOGGED_IN
        return SessionState.LOGGED_OUT

    def token_has_expired(self) -> bool:
        """Whether the held token is believed to be expired (or absent)."""
        return self._token_store.has_expired(self._token_lifetime)

    def _store(self, response: LoginResponse) -> None:
        self._token_store.set(response.access_token)
        self._logger.info("Logged in to HVCA")

    def _discard(self, error: BaseException) -> BaseException:
        self._token_store.reset()
        self._logger.warning("HVCA login failed", error=str(error))
        return _login_failure(error)


class Authenticator(_AuthenticatorBase):
    """Login coordination for the synchronous executor."""

    def __init__(
        self,
        executor: SyncRequestExecutor,
        credentials: LoginRequest,
        token_store: TokenStore,
        *,
        token_lifetime: float = DEFAULT_TOKEN_LIFETIME,
    ) -> None:
        super().__init__(credentials, token_store, token_lifetime=token_lifetime)
        self._executor = executor
        self._login_lock = threading.Lock()
        self._state_lock = threading.Lock()

    def login(self, *, deadline: float | None = None) -> None:
        """Log in unconditionally and store the new token.

        Not serialized against concurrent callers; use ``login_if_expired``
        for at-most-one-in-flight semantics.

        Raises:
            LoginError: If the login call fails. The token is cleared.
            RequestTimeoutError: If the deadline passes.
        """
        with self._state_lock:
            self._logins_in_flight += 1
        try:
            with login_span():
                response = self._executor.run(self._operation, deadline=deadline)
        except BaseException as e:
            failure = self._discard(e)
            if failure is e:
                raise
            raise failure from e
        finally:
            with self._state_lock:
                self._logins_in_flight -= 1

        self._store(response)

    def login_if_expired(self, *, deadline: float | None = None) -> None:
        """Log in if the held token is believed to be expired.

        At most one caller logs in at a time; the others wait for the login
        lock and then find the token already refreshed.
        """
        if not self.token_has_expired():
            return

        timeout = -1.0
        if deadline is not None:
            timeout = max(0.0, deadline - self._executor.clock())
        if not self._login_lock.acquire(timeout=timeout):
            msg = "deadline exceeded waiting for login"
            raise RequestTimeoutError(msg)

        try:
            if not self.token_has_expired():
                return
            self.login(deadline=deadline)
        finally:
            self._login_lock.release()


class AsyncAuthenticator(_AuthenticatorBase):
    """Login coordination for the asynchronous executor."""

    def __init__(
        self,
        executor: AsyncRequestExecutor,
        credentials: LoginRequest,
        token_store: TokenStore,
        *,
        token_lifetime: float = DEFAULT_TOKEN_LIFETIME,
    ) -> None:
        super().__init__(credentials, token_store, token_lifetime=token_lifetime)
        self._executor = executor
        self._login_lock = asyncio.Lock()

    async def login(self) -> None:
        """Log in unconditionally and store the new token.

        Raises:
            LoginError: If the login call fails. The token is cleared.
        """
        self._logins_in_flight += 1
        try:
            with login_span():
                response = await self._executor.run(self._operation)
        except BaseException as e:
            failure = self._discard(e)
            if failure is e:
                raise
            raise failure from e
        finally:
            self._logins_in_flight -= 1

        self._store(response)

    async def login_if_expired(self) -> None:
        """Log in if the held token is believed to be expired.

        At most one task logs in at a time; the others wait for the login
        lock and then find the token already refreshed.
        """
        if not self.token_has_expired():
            return

        async with self._login_lock:
            if not self.token_has_expired():
                return
            await self.login()
