"""Result dispatching: maps result values to Response objects.

isinstance-based dispatch, no magic, fully predictable. The same
function handles values returned by actions and values returned by
short-circuiting Walls, Shields, and Guards.
"""

from __future__ import annotations

import json as json_module
from typing import TYPE_CHECKING, Any

from rampart.errors import ConfigurationError
from rampart.http.response import Response
from rampart.results import HtmlResult, JsonResult, RedirectResult, TextResult, ViewResult

if TYPE_CHECKING:
    from kida import Environment


def _json_response(value: Any, status: int = 200) -> Response:
    return Response(
        body=json_module.dumps(value, default=str),
        status=status,
        content_type="application/json; charset=utf-8",
    )


def negotiate(value: Any, *, kida_env: Environment | None = None) -> Response:
    """Convert a result value to a Response.

    Dispatch order:

    1. ``Response``           -> pass through
    2. ``TextResult``         -> text/plain
    3. ``JsonResult``         -> application/json
    4. ``HtmlResult``         -> text/html
    5. ``ViewResult``         -> render via kida -> text/html
    6. ``RedirectResult``     -> 302 (or given status) with Location
    7. ``str``                -> 200, text/html
    8. ``bytes``              -> 200, application/octet-stream
    9. ``dict`` / ``list``    -> 200, application/json
    10. ``(value, int)``      -> negotiate value, override status
    """
    match value:
        case Response():
            return value
        case TextResult(text=text, status=status):
            return Response(body=text, status=status, content_type="text/plain; charset=utf-8")
        case JsonResult(value=payload, status=status):
            return _json_response(payload, status)
        case HtmlResult(html=html, status=status):
            return Response(body=html, status=status)
        case ViewResult():
            if kida_env is None:
                msg = (
                    "ViewResult requires a template environment. "
                    "Set AppConfig.template_dir or pass kida_env= to App()."
                )
                raise ConfigurationError(msg)
            template = kida_env.get_template(value.name)
            return Response(body=template.render(value.context), status=value.status)
        case RedirectResult(url=url, status=status):
            return Response(body="", status=status).with_header("Location", url)
        case str():
            return Response(body=value)
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case dict() | list():
            return _json_response(value)
        case (inner, int() as status):
            return negotiate(inner, kida_env=kida_env).with_status(status)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                f"Return a result helper (text_result, json_result, html_result, "
                f"view_result, redirect_result), str, dict, bytes, or Response."
            )
            raise TypeError(msg)


def create_view_environment(template_dir: Any, *, debug: bool = False) -> Environment:
    """Create the kida environment used to render ``ViewResult`` values.

    kida ships with the ``views`` extra (``pip install rampart[views]``).
    """
    try:
        from kida import Environment, FileSystemLoader
    except ImportError:
        msg = (
            "View rendering requires the 'kida' template engine. "
            "Install it with: pip install rampart[views]"
        )
        raise ConfigurationError(msg) from None

    return Environment(loader=FileSystemLoader(str(template_dir)), auto_reload=debug)
