"""Per-request context.

``RequestContext`` is the mutable aggregate handed to every interceptor
tier and to the controller. It is created when a request arrives and
discarded when the response is sent; it is never shared between requests.

The current context is also published through a ContextVar so helper
code can reach it without threading it through every call::

    from rampart.context import get_context

    ctx = get_context()
    ctx.data["trace_id"] = ...
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from rampart.http.forms import FileManager
from rampart.http.headers import check_header_value
from rampart.http.query import QueryParams
from rampart.http.request import Request

if TYPE_CHECKING:
    from rampart.http.cookies import CookieManager
    from rampart.sessions import SessionProvider


class PendingResponse:
    """Headers queued for the response before a result exists.

    The dispatcher sets ``X-Powered-By`` and ``Vary`` here before any
    interceptor runs; interceptors and actions may add more.
    """

    __slots__ = ("_headers",)

    def __init__(self) -> None:
        self._headers: list[tuple[str, str]] = []

    def set_header(self, name: str, value: str) -> None:
        """Set *name*, replacing any value queued earlier."""
        lowered = name.lower()
        self._headers = [(k, v) for k, v in self._headers if k.lower() != lowered]
        self._headers.append((name, check_header_value(name, value)))

    def add_header(self, name: str, value: str) -> None:
        """Queue an additional value for *name*."""
        self._headers.append((name, check_header_value(name, value)))

    def get_header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self._headers:
            if key.lower() == lowered:
                return value
        return None

    @property
    def headers(self) -> tuple[tuple[str, str], ...]:
        return tuple(self._headers)


_EMPTY_PARAMS: MappingProxyType[str, str] = MappingProxyType({})


@dataclass(slots=True)
class RequestContext:
    """Everything one request carries through the pipeline.

    ``data`` is the channel for passing information forward between
    tiers and into the action. ``query`` and ``params`` are read-only;
    ``cookie`` and ``session`` are bound once at construction.
    """

    request: Request
    response: PendingResponse = field(default_factory=PendingResponse)
    cookie: CookieManager | None = None
    session: SessionProvider | None = None
    body: dict[str, Any] = field(default_factory=dict)
    params: MappingProxyType[str, str] = _EMPTY_PARAMS
    data: dict[str, Any] = field(default_factory=dict)
    file: FileManager = field(default_factory=FileManager)

    @property
    def query(self) -> QueryParams:
        return self.request.query


context_var: ContextVar[RequestContext] = ContextVar("rampart_context")
"""The current request context. Set by the dispatcher before the first tier."""


def get_context() -> RequestContext:
    """Return the current request context.

    Raises ``LookupError`` if called outside a request.
    """
    return context_var.get()
