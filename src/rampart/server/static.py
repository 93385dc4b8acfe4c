"""Static-resource collaborator.

Called by the dispatcher when no route pattern matches the path. Serves
files from one directory with index-file resolution; anything it cannot
serve raises ``NotFound``.

Security: resolves symlinks and verifies the final path stays inside the
configured directory to prevent path traversal.
"""

import mimetypes
from pathlib import Path

from rampart.errors import HTTPError, NotFound
from rampart.http.response import Response


class StaticResources:
    """Serves files from *directory* for unmatched GET/HEAD requests.

    Usage::

        static = StaticResources("./public", cache_control="no-cache")
        response = static.serve("/css/site.css")
    """

    __slots__ = ("_cache_control", "_directory", "_index")

    def __init__(
        self,
        directory: str | Path,
        *,
        index: str = "index.html",
        cache_control: str = "public, max-age=3600",
    ) -> None:
        self._directory = Path(directory).resolve()
        self._index = index
        self._cache_control = cache_control

    @property
    def directory(self) -> Path:
        return self._directory

    def serve(self, path: str) -> Response:
        """Return the file for *path*.

        Directories serve their index file; a directory requested without
        a trailing slash is redirected to the slash form first.
        """
        relative = path.lstrip("/")
        file_path = (self._directory / relative).resolve() if relative else self._directory
        if not file_path.is_relative_to(self._directory):
            raise HTTPError(status=403, detail="Forbidden")

        if file_path.is_dir():
            index_path = file_path / self._index
            if not index_path.is_file():
                raise NotFound(f"No resource at {path!r}")
            if relative and not path.endswith("/"):
                return Response(body="", status=301).with_header("Location", path + "/")
            file_path = index_path

        if not file_path.is_file():
            raise NotFound(f"No resource at {path!r}")

        content_type, _ = mimetypes.guess_type(str(file_path))
        return Response(
            body=file_path.read_bytes(),
            content_type=content_type or "application/octet-stream",
        ).with_header("Cache-Control", self._cache_control)
