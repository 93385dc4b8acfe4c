"""Server-side sessions keyed by a session-id cookie.

The dispatcher reads the session id from ``AppConfig.session_cookie_name``
once per request and hands it, with the request's ``CookieManager``, to
a ``SessionProvider``. The provider scopes every operation to that id
against its backing store.

When ``AppConfig.secret_key`` is set, the id in the cookie is signed with
``itsdangerous``; a tampered cookie reads as "no session".
"""

import logging
import secrets
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from itsdangerous import BadSignature, Signer

from rampart.config import AppConfig
from rampart.http.cookies import CookieManager, HttpCookie

logger = logging.getLogger("rampart.sessions")


class SessionIdCodec:
    """Encodes session ids into cookie values and back."""

    __slots__ = ("_signer",)

    def __init__(self, secret_key: str = "") -> None:
        self._signer = Signer(secret_key, salt="rampart.session") if secret_key else None

    def encode(self, session_id: str) -> str:
        if self._signer is None:
            return session_id
        return self._signer.sign(session_id).decode("ascii")

    def decode(self, value: str | None) -> str | None:
        """Return the session id in *value*, or None if missing or tampered."""
        if not value:
            return None
        if self._signer is None:
            return value
        try:
            return self._signer.unsign(value).decode("ascii")
        except BadSignature:
            logger.warning("Discarding session cookie with a bad signature")
            return None


class SessionProvider(ABC):
    """Async key/value session bound to one session id.

    Subclasses implement storage; this base owns the session cookie.
    The id given at construction is kept for the whole request. A
    provider constructed without an id creates one on the first write.
    """

    def __init__(
        self,
        session_id: str | None,
        cookie: CookieManager | None,
        config: AppConfig,
    ) -> None:
        self._session_id = session_id
        self._cookie = cookie
        self._config = config
        self._codec = SessionIdCodec(config.secret_key)

    @property
    def session_id(self) -> str | None:
        """The bound session id, or None before the first write."""
        return self._session_id

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the value for *key*, or None if absent."""

    @abstractmethod
    async def is_exist(self, key: str) -> bool:
        """True if *key* is set in this session."""

    @abstractmethod
    async def get_all(self) -> dict[str, Any]:
        """Return a copy of every key/value in this session."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*."""

    async def set_many(self, values: Mapping[str, Any]) -> None:
        """Store every item of *values*."""
        for key, value in values.items():
            await self.set(key, value)

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete *key*; missing keys are ignored."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete every key in this session and expire the session cookie."""

    # -- Cookie lifecycle helpers for subclasses --

    def _ensure_session(self) -> str:
        """Return the session id, creating it and its cookie if needed."""
        if self._session_id is None:
            self._session_id = secrets.token_urlsafe(24)
            logger.debug("Created session %s", self._session_id[:8])
        cookie_name = self._config.session_cookie_name
        if self._cookie is not None and not self._cookie.is_exist(cookie_name):
            self._cookie.add_cookie(
                HttpCookie(
                    name=cookie_name,
                    value=self._codec.encode(self._session_id),
                    http_only=True,
                    max_age=self._config.session_max_age,
                    path="/",
                )
            )
        return self._session_id

    def _end_session(self) -> None:
        """Expire the session cookie on the client."""
        if self._cookie is not None:
            self._cookie.remove_cookie(self._config.session_cookie_name)


@dataclass(slots=True)
class _StoredSession:
    values: dict[str, Any]
    expires_at: float


class MemorySessionStore:
    """Process-wide in-memory backing store: session id -> values.

    A session expires ``max_age`` seconds after it is created, the same
    lifetime its cookie gets. Expired sessions read as absent. They are
    dropped when next accessed, and by a sweep each time a new session
    is created.
    """

    __slots__ = ("_clock", "_sessions")

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._sessions: dict[str, _StoredSession] = {}

    def values_for(self, session_id: str | None) -> dict[str, Any] | None:
        if session_id is None:
            return None
        stored = self._sessions.get(session_id)
        if stored is None:
            return None
        if stored.expires_at <= self._clock():
            del self._sessions[session_id]
            logger.debug("Session %s expired", session_id[:8])
            return None
        return stored.values

    def values_for_write(self, session_id: str, max_age: int) -> dict[str, Any]:
        values = self.values_for(session_id)
        if values is not None:
            return values
        self.sweep()
        stored = _StoredSession(values={}, expires_at=self._clock() + max_age)
        self._sessions[session_id] = stored
        return stored.values

    def drop(self, session_id: str | None) -> None:
        if session_id is not None:
            self._sessions.pop(session_id, None)

    def sweep(self) -> int:
        """Drop every expired session. Returns how many were dropped."""
        now = self._clock()
        expired = [sid for sid, stored in self._sessions.items() if stored.expires_at <= now]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.debug("Swept %d expired sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


class MemorySessionProvider(SessionProvider):
    """Default provider backed by a process-wide ``MemorySessionStore``.

    Data lives only as long as the process; use a custom provider for
    anything shared between workers.
    """

    store = MemorySessionStore()

    async def get(self, key: str) -> Any:
        values = self.store.values_for(self._session_id)
        if values is None:
            return None
        return values.get(key)

    async def is_exist(self, key: str) -> bool:
        values = self.store.values_for(self._session_id)
        return values is not None and key in values

    async def get_all(self) -> dict[str, Any]:
        return dict(self.store.values_for(self._session_id) or {})

    async def set(self, key: str, value: Any) -> None:
        session_id = self._ensure_session()
        self.store.values_for_write(session_id, self._config.session_max_age)[key] = value

    async def set_many(self, values: Mapping[str, Any]) -> None:
        session_id = self._ensure_session()
        self.store.values_for_write(session_id, self._config.session_max_age).update(values)

    async def remove(self, key: str) -> None:
        values = self.store.values_for(self._session_id)
        if values is not None:
            values.pop(key, None)

    async def clear(self) -> None:
        if self._session_id is None:
            return
        self.store.drop(self._session_id)
        self._end_session()
