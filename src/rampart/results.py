"""Result values returned by actions and interceptors.

Each is a frozen description of what to send; the result dispatcher
(``rampart.server.negotiation``) turns it into a ``Response``. Actions
can also return a ``Response`` directly, or a plain ``str`` / ``dict``.

Usage::

    return text_result("Authenticated")
    return json_result({"id": 7}, status=201)
    return view_result("users/detail.html", user=user)
    return redirect_result("/login")
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class TextResult:
    """A ``text/plain`` body."""

    text: str
    status: int = 200


@dataclass(frozen=True, slots=True)
class JsonResult:
    """A JSON-encoded body."""

    value: Any
    status: int = 200


@dataclass(frozen=True, slots=True)
class HtmlResult:
    """A ``text/html`` body."""

    html: str
    status: int = 200


@dataclass(frozen=True, slots=True)
class ViewResult:
    """A template rendered with kida."""

    name: str
    context: dict[str, Any] = field(default_factory=dict)
    status: int = 200


@dataclass(frozen=True, slots=True)
class RedirectResult:
    """A redirect to *url*."""

    url: str
    status: int = 302


def text_result(text: str, status: int = 200) -> TextResult:
    return TextResult(text, status)


def json_result(value: Any, status: int = 200) -> JsonResult:
    return JsonResult(value, status)


def html_result(html: str, status: int = 200) -> HtmlResult:
    return HtmlResult(html, status)


def view_result(name: str, status: int = 200, /, **context: Any) -> ViewResult:
    return ViewResult(name, context, status)


def redirect_result(url: str, status: int = 302) -> RedirectResult:
    return RedirectResult(url, status)
