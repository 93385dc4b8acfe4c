"""Tests for rampart.errors and the rampart.server.errors sink."""

from typing import Any

from rampart.errors import (
    BadRequest,
    HTTPError,
    InterceptorFailure,
    MethodNotAllowed,
    NotFound,
    PayloadTooLarge,
    RampartError,
)
from rampart.http.request import Request
from rampart.server.errors import handle_http_error, handle_internal_error


def _request() -> Request:
    async def receive() -> dict[str, Any]:
        return {"type": "http.disconnect"}

    scope = {"type": "http", "method": "GET", "path": "/x", "headers": [], "query_string": b""}
    return Request.from_asgi(scope, receive)


class TestHierarchy:
    def test_http_errors_are_rampart_errors(self) -> None:
        for exc in (BadRequest(), NotFound(), PayloadTooLarge(10), MethodNotAllowed(frozenset())):
            assert isinstance(exc, HTTPError)
            assert isinstance(exc, RampartError)

    def test_status_codes(self) -> None:
        assert BadRequest().status == 400
        assert NotFound().status == 404
        assert PayloadTooLarge(10).status == 413

    def test_method_not_allowed_allow_header(self) -> None:
        exc = MethodNotAllowed(frozenset({"POST", "GET"}))
        assert exc.status == 405
        assert exc.headers == (("Allow", "GET, POST"),)
        assert "GET, POST" in exc.detail

    def test_str(self) -> None:
        assert str(NotFound("gone")) == "404: gone"
        assert str(HTTPError(status=418)) == "418"

    def test_interceptor_failure_message(self) -> None:
        exc = InterceptorFailure("wall", "ApiKeyWall")
        assert exc.tier == "wall"
        assert str(exc) == "wall 'ApiKeyWall' failed"


class TestErrorSink:
    async def test_default_http_error_body(self) -> None:
        response = await handle_http_error(NotFound("gone"), _request(), {}, None, False)
        assert response.status == 404
        assert response.text == "gone"
        assert response.content_type == "text/plain; charset=utf-8"

    async def test_allow_header_survives_custom_handler(self) -> None:
        handlers = {405: lambda: "nope"}
        exc = MethodNotAllowed(frozenset({"GET"}))
        response = await handle_http_error(exc, _request(), handlers, None, False)
        assert response.status == 405
        assert response.get_header("Allow") == "GET"

    async def test_async_handler(self) -> None:
        async def handler(request, exc):
            return f"{exc.status} at {request.path}"

        response = await handle_http_error(NotFound(), _request(), {NotFound: handler}, None, False)
        assert response.text == "404 at /x"

    async def test_internal_error_generic_body(self) -> None:
        response = await handle_internal_error(RuntimeError("secret"), _request(), {}, None, False)
        assert response.status == 500
        assert response.text == "Internal Server Error"

    async def test_internal_error_handler_by_cause(self) -> None:
        failure = InterceptorFailure("guard", "CheckGuard")
        failure.__cause__ = KeyError("k")
        handlers = {KeyError: lambda: ("handled", 503)}
        response = await handle_internal_error(failure, _request(), handlers, None, False)
        assert response.status == 503
        assert response.text == "handled"

    async def test_internal_error_500_handler(self) -> None:
        handlers = {500: lambda request: "custom 500"}
        response = await handle_internal_error(ValueError(), _request(), handlers, None, False)
        assert response.status == 500
        assert response.text == "custom 500"
