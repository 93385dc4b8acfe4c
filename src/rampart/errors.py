"""Rampart exception hierarchy.

Shared across Router, App, dispatcher, and interceptors so every module
raises and catches the same types.
"""

from dataclasses import dataclass


class RampartError(Exception):
    """Base for all rampart-specific errors."""


class ConfigurationError(RampartError):
    """Raised when app configuration or route registration is invalid.

    Typically raised during ``App._freeze()`` at startup.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(RampartError):
    """An error that maps directly to an HTTP status code.

    Raised by the dispatcher, interceptors, or actions. The dispatcher
    catches these and routes them to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class BadRequest(HTTPError):  # noqa: N818
    """400: the request body or headers could not be parsed."""

    def __init__(self, detail: str = "Bad Request") -> None:
        super().__init__(status=400, detail=detail)


class NotFound(HTTPError):  # noqa: N818
    """404: no route or static resource matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: the path is known but not for this HTTP method.

    Carries an ``Allow`` header listing the registered methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )


class PayloadTooLarge(HTTPError):  # noqa: N818
    """413: the request body exceeds ``AppConfig.max_content_length``."""

    def __init__(self, limit: int) -> None:
        super().__init__(status=413, detail=f"Request body exceeds {limit} bytes")


class InterceptorFailure(RampartError):  # noqa: N818
    """A Wall, Shield, or Guard raised while checking a request.

    Always fatal for the request. The original exception is chained
    as ``__cause__``.
    """

    def __init__(self, tier: str, interceptor: str) -> None:
        self.tier = tier
        self.interceptor = interceptor
        super().__init__(f"{tier} {interceptor!r} failed")


class ClientDisconnected(RampartError):  # noqa: N818
    """The client went away while the request body was being read."""
