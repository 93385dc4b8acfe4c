"""Immutable HTTP request.

Frozen metadata with async body access. Interceptors and actions read
the request; they never replace it.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

from rampart._internal.asgi import Receive, Scope
from rampart.errors import ClientDisconnected, PayloadTooLarge
from rampart.http.headers import Headers
from rampart.http.query import QueryParams


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata is frozen at creation. The body is read once through
    ``.body()`` and cached for later readers.
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    http_version: str
    server: tuple[str, int] | None
    client: tuple[str, int] | None

    # Private: ASGI receive callable for body streaming
    _receive: Receive

    # Private: mutable cache for the body bytes
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def url(self) -> str:
        """Path plus query string."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    @property
    def client_ip(self) -> str | None:
        """Best-effort client address, honouring ``X-Forwarded-For``."""
        forwarded = self.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[-1].strip()
        return self.client[0] if self.client else None

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks.

        Raises ``ClientDisconnected`` if the server reports a disconnect
        before the body is complete.
        """
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                raise ClientDisconnected(f"{self.method} {self.path}")
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def body(self, *, limit: int | None = None) -> bytes:
        """Read the full request body, cached after the first call.

        Raises ``PayloadTooLarge`` once more than *limit* bytes arrive.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        if limit is not None and (self.content_length or 0) > limit:
            raise PayloadTooLarge(limit)
        chunks: list[bytes] = []
        size = 0
        async for chunk in self.stream():
            size += len(chunk)
            if limit is not None and size > limit:
                raise PayloadTooLarge(limit)
            chunks.append(chunk)
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=Headers(tuple(scope.get("headers", ()))),
            query=QueryParams(scope.get("query_string", b"")),
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            _receive=receive,
        )
