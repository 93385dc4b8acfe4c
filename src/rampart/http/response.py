"""HTTP response with a chainable ``.with_*()`` transformation API.

Each transformation returns a new Response. The dispatcher assembles
the final Response from the action's result, the headers interceptors
queued on the context, and the CookieManager's outbound cookies.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace


@dataclass(frozen=True, slots=True)
class Response:
    """An HTTP response built through immutable transformations."""

    body: str | bytes = ""
    status: int = 200
    content_type: str = "text/html; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()
    cookies: tuple[str, ...] = ()  # serialized Set-Cookie values

    def with_status(self, status: int) -> Response:
        """Return a new Response with a different status code."""
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> Response:
        """Return a new Response with an additional header."""
        return replace(self, headers=(*self.headers, (name, value)))

    def with_headers(self, headers: Mapping[str, str] | Iterable[tuple[str, str]]) -> Response:
        """Return a new Response with additional headers."""
        pairs = headers.items() if isinstance(headers, Mapping) else headers
        return replace(self, headers=(*self.headers, *pairs))

    def with_content_type(self, content_type: str) -> Response:
        """Return a new Response with a different content type."""
        return replace(self, content_type=content_type)

    def with_cookies(self, cookies: Iterable[str]) -> Response:
        """Return a new Response with additional ``Set-Cookie`` values."""
        return replace(self, cookies=(*self.cookies, *cookies))

    def get_header(self, name: str) -> str | None:
        """First value of header *name* (case-insensitive), or None."""
        values = self.get_header_list(name)
        return values[0] if values else None

    def get_header_list(self, name: str) -> list[str]:
        """Every value of header *name* (case-insensitive)."""
        lowered = name.lower()
        values = [v for k, v in self.headers if k.lower() == lowered]
        if lowered == "set-cookie":
            values.extend(self.cookies)
        return values

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        """Body as string."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body
