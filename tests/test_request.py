"""Tests for rampart.http.request, headers, and query params."""

from typing import Any

import pytest

from rampart.errors import ClientDisconnected, PayloadTooLarge
from rampart.http.headers import Headers
from rampart.http.query import QueryParams
from rampart.http.request import Request


def _scope(**overrides: Any) -> dict[str, Any]:
    scope: dict[str, Any] = {
        "type": "http",
        "method": "get",
        "path": "/items",
        "headers": [(b"host", b"example.com"), (b"Content-Type", b"text/plain")],
        "query_string": b"page=2&tag=a&tag=b",
        "server": ("example.com", 80),
        "client": ("10.0.0.1", 5000),
    }
    scope.update(overrides)
    return scope


def _receiver(*messages: dict[str, Any]):
    queue = list(messages)

    async def receive() -> dict[str, Any]:
        return queue.pop(0)

    return receive


class TestRequestFromAsgi:
    def test_metadata(self) -> None:
        request = Request.from_asgi(_scope(), _receiver())
        assert request.method == "GET"
        assert request.path == "/items"
        assert request.content_type == "text/plain"
        assert request.url == "/items?page=2&tag=a&tag=b"
        assert request.server == ("example.com", 80)
        assert request.client_ip == "10.0.0.1"

    def test_forwarded_for(self) -> None:
        scope = _scope(headers=[(b"x-forwarded-for", b"1.1.1.1, 2.2.2.2")])
        assert Request.from_asgi(scope, _receiver()).client_ip == "2.2.2.2"

    def test_content_length(self) -> None:
        scope = _scope(headers=[(b"content-length", b"12")])
        assert Request.from_asgi(scope, _receiver()).content_length == 12
        bad = _scope(headers=[(b"content-length", b"twelve")])
        assert Request.from_asgi(bad, _receiver()).content_length is None


class TestRequestBody:
    async def test_chunked_body_is_joined_and_cached(self) -> None:
        request = Request.from_asgi(
            _scope(),
            _receiver(
                {"type": "http.request", "body": b"hel", "more_body": True},
                {"type": "http.request", "body": b"lo", "more_body": False},
            ),
        )
        assert await request.body() == b"hello"
        assert await request.body() == b"hello"

    async def test_declared_length_over_limit(self) -> None:
        request = Request.from_asgi(
            _scope(headers=[(b"content-length", b"100")]),
            _receiver({"type": "http.request", "body": b"x", "more_body": False}),
        )
        with pytest.raises(PayloadTooLarge):
            await request.body(limit=10)

    async def test_streamed_length_over_limit(self) -> None:
        request = Request.from_asgi(
            _scope(),
            _receiver(
                {"type": "http.request", "body": b"x" * 8, "more_body": True},
                {"type": "http.request", "body": b"x" * 8, "more_body": False},
            ),
        )
        with pytest.raises(PayloadTooLarge):
            await request.body(limit=10)

    async def test_disconnect_mid_body(self) -> None:
        request = Request.from_asgi(
            _scope(),
            _receiver(
                {"type": "http.request", "body": b"part", "more_body": True},
                {"type": "http.disconnect"},
            ),
        )
        with pytest.raises(ClientDisconnected):
            await request.body()


class TestHeaders:
    def test_case_insensitive(self) -> None:
        headers = Headers(((b"Content-Type", b"text/html"),))
        assert headers["content-type"] == "text/html"
        assert "CONTENT-TYPE" in headers
        assert headers.get("missing") is None

    def test_get_list(self) -> None:
        headers = Headers(((b"accept", b"a"), (b"Accept", b"b")))
        assert headers.get_list("accept") == ["a", "b"]
        assert headers["accept"] == "a"


class TestQueryParams:
    def test_first_value_and_list(self) -> None:
        query = QueryParams(b"tag=a&tag=b&page=3")
        assert query["tag"] == "a"
        assert query.get_list("tag") == ["a", "b"]
        assert query.get_int("page") == 3

    def test_get_int_default(self) -> None:
        query = QueryParams(b"page=abc")
        assert query.get_int("page", 1) == 1
        assert query.get_int("missing") is None
