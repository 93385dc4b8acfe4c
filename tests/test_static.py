"""Tests for rampart.server.static: the unmatched-path fallback."""

import pytest

from rampart.errors import HTTPError, NotFound
from rampart.server.static import StaticResources


@pytest.fixture
def static_dir(tmp_path):
    """Create temporary static files for testing."""
    static = tmp_path / "static"
    static.mkdir()
    (static / "style.css").write_text("body { color: red; }")
    (static / "data.bin").write_bytes(b"\x00\x01\x02\x03")
    (static / "index.html").write_text("<h1>Home</h1>")

    docs = static / "docs"
    docs.mkdir()
    (docs / "index.html").write_text("<h1>Docs</h1>")

    (static / "empty").mkdir()
    (tmp_path / "secret.txt").write_text("top secret")
    return static


class TestStaticResources:
    def test_serves_file_with_mime_type(self, static_dir) -> None:
        response = StaticResources(static_dir).serve("/style.css")
        assert response.status == 200
        assert response.content_type == "text/css"
        assert response.body == b"body { color: red; }"
        assert response.get_header("Cache-Control") == "public, max-age=3600"

    def test_unknown_extension_is_octet_stream(self, static_dir) -> None:
        response = StaticResources(static_dir).serve("/data.bin")
        assert response.content_type == "application/octet-stream"

    def test_root_serves_index(self, static_dir) -> None:
        response = StaticResources(static_dir).serve("/")
        assert response.body == b"<h1>Home</h1>"

    def test_directory_with_slash_serves_index(self, static_dir) -> None:
        response = StaticResources(static_dir).serve("/docs/")
        assert response.body == b"<h1>Docs</h1>"

    def test_directory_without_slash_redirects(self, static_dir) -> None:
        response = StaticResources(static_dir).serve("/docs")
        assert response.status == 301
        assert response.get_header("Location") == "/docs/"

    def test_custom_index_and_cache_control(self, static_dir) -> None:
        (static_dir / "home.htm").write_text("alt")
        static = StaticResources(static_dir, index="home.htm", cache_control="no-cache")
        response = static.serve("/")
        assert response.body == b"alt"
        assert response.get_header("Cache-Control") == "no-cache"

    def test_missing_file_is_not_found(self, static_dir) -> None:
        with pytest.raises(NotFound):
            StaticResources(static_dir).serve("/nope.css")

    def test_directory_without_index_is_not_found(self, static_dir) -> None:
        with pytest.raises(NotFound):
            StaticResources(static_dir).serve("/empty/")

    def test_missing_directory_is_not_found(self, tmp_path) -> None:
        with pytest.raises(NotFound):
            StaticResources(tmp_path / "absent").serve("/anything.txt")

    def test_traversal_is_forbidden(self, static_dir) -> None:
        with pytest.raises(HTTPError) as exc_info:
            StaticResources(static_dir).serve("/../secret.txt")
        assert exc_info.value.status == 403
