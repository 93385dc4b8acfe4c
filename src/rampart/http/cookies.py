"""Cookie parsing, serialization, and the per-request CookieManager.

The read side (``parse_cookies``) turns the incoming ``Cookie`` header into
a name-value dict. The write side (``HttpCookie.to_header_value``) produces
``Set-Cookie`` strings. ``CookieManager`` ties both together for exactly
one request/response pair.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from email.utils import format_datetime
from types import MappingProxyType

from rampart.http.headers import check_header_value

# How far in the past a removal cookie expires
_REMOVAL_OFFSET = timedelta(minutes=100)


def parse_cookies(header: str | None) -> dict[str, str | None]:
    """Parse a ``Cookie`` header value into a name-value dict.

    Returns an empty dict for empty or missing headers. Pairs without
    ``=`` are skipped; the last duplicate wins.
    """
    if not header:
        return {}
    cookies: dict[str, str | None] = {}
    for pair in header.split(";"):
        pair = pair.strip()
        if "=" in pair:
            key, _, value = pair.partition("=")
            cookies[key.strip()] = value.strip()
    return cookies


@dataclass(frozen=True, slots=True)
class HttpCookie:
    """A cookie as read from the request or written to the response."""

    name: str
    value: str | None = None
    expires: datetime | None = None
    http_only: bool = False
    max_age: int | None = None
    path: str | None = None
    domain: str | None = None

    def to_header_value(self) -> str:
        """Serialize to a ``Set-Cookie`` header value string.

        Attribute order is fixed: Expires, HttpOnly, Max-Age, Path, Domain.
        Raises ``ValueError`` if the result cannot be sent as a header.
        """
        value = "" if self.value is None else self.value
        parts = [f"{self.name}={value};"]
        if self.expires is not None:
            expires = self.expires
            if expires.tzinfo is None:
                expires = expires.replace(tzinfo=UTC)
            parts.append(f"Expires={format_datetime(expires.astimezone(UTC), usegmt=True)};")
        if self.http_only:
            parts.append("HttpOnly;")
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age};")
        if self.path:
            parts.append(f"Path={self.path};")
        if self.domain:
            parts.append(f"Domain={self.domain};")
        return check_header_value("Set-Cookie", " ".join(parts))


class CookieManager:
    """Cookie state for one request/response pair.

    Holds the cookies sent by the client plus every cookie change made
    while handling the request. Changes are recorded twice: in the value
    map (so later reads in the same request see them) and as an
    append-only list of ``Set-Cookie`` strings written to the response.

    Not shared between requests.
    """

    __slots__ = ("_collection", "_response_cookies")

    def __init__(self, parsed: Mapping[str, str | None] | None = None) -> None:
        self._collection: dict[str, str | None] = dict(parsed or {})
        self._response_cookies: list[str] = []

    def get_cookie(self, name: str) -> HttpCookie:
        """Return the cookie *name*; its value is ``None`` when absent."""
        return HttpCookie(name=name, value=self._collection.get(name))

    def is_exist(self, name: str) -> bool:
        """True if the cookie is present and has not been removed."""
        return self._collection.get(name) is not None

    def add_cookie(self, cookie: HttpCookie) -> None:
        """Set a cookie for the rest of the request and on the response."""
        header_value = cookie.to_header_value()
        self._collection[cookie.name] = cookie.value
        self._response_cookies.append(header_value)

    def remove_cookie(self, name: str) -> None:
        """Expire the cookie on the client.

        The name stays in the value map with a ``None`` value, so
        ``get_cookie`` still returns an object while ``is_exist`` is false.
        """
        self._collection[name] = None
        expired = HttpCookie(
            name=name,
            value=None,
            expires=datetime.now(UTC) - _REMOVAL_OFFSET,
        )
        self._response_cookies.append(expired.to_header_value())

    @property
    def cookie_collection(self) -> Mapping[str, str | None]:
        """Read-only view of the current cookie values."""
        return MappingProxyType(self._collection)

    @property
    def response_cookies(self) -> tuple[str, ...]:
        """Outbound ``Set-Cookie`` values, in the order they were added."""
        return tuple(self._response_cookies)

    def __repr__(self) -> str:
        return f"CookieManager({self._collection!r}, pending={len(self._response_cookies)})"
