"""Error sink for rampart requests.

Every failure the dispatcher catches ends up here exactly once. HTTP
errors map to their own status; anything else is a 500. Registered
``@app.error()`` handlers take precedence over the defaults and are
looked up by exception type first, then by status code.
"""

from __future__ import annotations

import inspect
import logging
import traceback
from collections.abc import Callable, Mapping
from html import escape
from typing import TYPE_CHECKING, Any

from rampart._internal.invoke import invoke
from rampart.errors import HTTPError, InterceptorFailure
from rampart.http.request import Request
from rampart.http.response import Response
from rampart.server.negotiation import negotiate

if TYPE_CHECKING:
    from kida import Environment

logger = logging.getLogger("rampart.server")

type ErrorHandlers = Mapping[int | type, Callable[..., Any]]

_PLAIN = "text/plain; charset=utf-8"


def find_handler(
    error_handlers: ErrorHandlers,
    *keys: int | type | None,
) -> Callable[..., Any] | None:
    """First registered handler among *keys*, skipping ``None`` keys."""
    for key in keys:
        if key is not None and key in error_handlers:
            return error_handlers[key]
    return None


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: Exception,
    status: int,
    kida_env: Environment | None,
) -> Response:
    """Run a user-registered handler and negotiate its result.

    Handlers may accept zero, one (request), or two (request, exc)
    arguments, and may be sync or async. A plain 200 result takes the
    error's *status*.
    """
    arity = len(inspect.signature(handler).parameters)
    args = (request, exc)[: min(arity, 2)]
    response = negotiate(await invoke(handler, *args), kida_env=kida_env)
    return response.with_status(status) if response.status == 200 else response


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: ErrorHandlers,
    kida_env: Environment | None,
    debug: bool,
) -> Response:
    """Map an HTTPError to a Response. Protocol headers always survive."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    handler = find_handler(error_handlers, type(exc), exc.status)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, exc.status, kida_env)
    else:
        body = exc.detail or f"Error {exc.status}"
        if debug and exc.detail:
            body = str(exc)
        response = Response(body=body, status=exc.status, content_type=_PLAIN)

    return response.with_headers(exc.headers)


def _debug_body(exc: Exception, request: Request) -> str:
    trace = "".join(traceback.format_exception(exc))
    return (
        "<!doctype html><title>500 Internal Server Error</title>"
        f"<h1>{escape(type(exc).__name__)}: {escape(str(exc))}</h1>"
        f"<p>{escape(request.method)} {escape(request.url)}</p>"
        f"<pre>{escape(trace)}</pre>"
    )


async def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: ErrorHandlers,
    kida_env: Environment | None,
    debug: bool,
) -> Response:
    """Answer an interceptor or action failure with a 500."""
    cause = exc.__cause__ if isinstance(exc, InterceptorFailure) else None
    logger.exception("500 %s %s: %s", request.method, request.path, exc)

    handler = find_handler(
        error_handlers,
        type(exc),
        type(cause) if cause is not None else None,
        500,
    )
    if handler is not None:
        return await call_error_handler(handler, request, exc, 500, kida_env)
    if debug:
        return Response(body=_debug_body(exc, request), status=500)
    return Response(body="Internal Server Error", status=500, content_type=_PLAIN)
