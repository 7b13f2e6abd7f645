"""Session token storage shared by every call made through one client."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers block until
    it has finished.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TokenStore:
    """Bearer token and the time of the login that produced it.

    The token and its timestamp are always written together under the
    exclusive lock. The lock is never held across I/O or an await.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = ReadWriteLock()
        self._token = ""
        self._last_login_at: float | None = None

    def read(self) -> str:
        """Current token, or an empty string when logged out."""
        with self._lock.read():
            return self._token

    def set(self, token: str) -> None:
        """Store a freshly issued token, stamped with the current time."""
        with self._lock.write():
            self._token = token
            self._last_login_at = self._clock()

    def reset(self) -> None:
        """Forget the token and the last login time."""
        with self._lock.write():
            self._token = ""
            self._last_login_at = None

    def has_expired(self, lifetime: float) -> bool:
        """Whether more than ``lifetime`` seconds have passed since the last login.

        A store that has never been set, or has been reset, is always expired.
        """
        with self._lock.read():
            if self._last_login_at is None:
                return True
            return self._clock() - self._last_login_at > lifetime
