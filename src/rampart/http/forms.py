"""Request body parsing: JSON, URL-encoded, and multipart.

This is the default body-parsing collaborator used by the dispatcher
between the Shield and Guard tiers. Every parse failure surfaces as
``BadRequest`` so the dispatcher can answer 400 without treating it as
a server error.

URL-encoded forms use stdlib ``urllib.parse``; multipart bodies use
``python-multipart``.
"""

import json as json_module
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs

from rampart.errors import BadRequest
from rampart.http.request import Request

logger = logging.getLogger("rampart.server")


@dataclass(frozen=True, slots=True)
class UploadFile:
    """An uploaded file from a multipart form submission.

    The content is held in memory, which suits typical web uploads.
    """

    field_name: str
    filename: str
    content_type: str
    size: int
    _content: bytes = field(repr=False)

    async def read(self) -> bytes:
        """Return the file content as bytes."""
        return self._content

    async def save(self, path: str | Path) -> None:
        """Write the file content to *path*. Parent directories must exist."""
        Path(path).write_bytes(self._content)


class FileManager(Mapping[str, UploadFile]):
    """Uploaded files for one request, keyed by form field name."""

    __slots__ = ("_files",)

    def __init__(self, files: Mapping[str, UploadFile] | None = None) -> None:
        self._files = dict(files or {})

    def __getitem__(self, field_name: str) -> UploadFile:
        return self._files[field_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def is_exist(self, field_name: str) -> bool:
        """True if a file was uploaded under *field_name*."""
        return field_name in self._files

    async def save_to(self, field_name: str, path: str | Path) -> None:
        """Save the file uploaded under *field_name* to *path*."""
        await self._files[field_name].save(path)


@dataclass(frozen=True, slots=True)
class ParsedBody:
    """Result of parsing a request body."""

    data: dict[str, Any] = field(default_factory=dict)
    files: FileManager = field(default_factory=FileManager)


async def parse_body(request: Request, *, limit: int | None = None) -> ParsedBody:
    """Parse the request body according to its Content-Type.

    - ``application/json`` -> decoded JSON (objects become the body dict,
      any other JSON value is stored under ``"value"``)
    - ``application/x-www-form-urlencoded`` -> dict; repeated keys become lists
    - ``multipart/form-data`` -> dict of fields plus uploaded files
    - anything else -> empty body

    Raises ``BadRequest`` on malformed input and ``PayloadTooLarge`` when
    the body exceeds *limit* bytes.
    """
    raw = await request.body(limit=limit)
    content_type = request.content_type or ""
    media_type = content_type.split(";")[0].strip().lower()

    if not raw:
        return ParsedBody()

    if media_type == "application/json" or media_type.endswith("+json"):
        return ParsedBody(data=_parse_json(raw))
    if media_type == "application/x-www-form-urlencoded":
        return ParsedBody(data=_parse_urlencoded(raw))
    if media_type == "multipart/form-data":
        return _parse_multipart(raw, content_type)

    logger.debug("Skipping body with unsupported content type %r", content_type)
    return ParsedBody()


def _parse_json(raw: bytes) -> dict[str, Any]:
    try:
        value = json_module.loads(raw)
    except (UnicodeDecodeError, json_module.JSONDecodeError) as exc:
        raise BadRequest(f"Malformed JSON body: {exc}") from exc
    if isinstance(value, dict):
        return value
    return {"value": value}


def _flatten(parsed: dict[str, list[str]]) -> dict[str, Any]:
    return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


def _parse_urlencoded(raw: bytes) -> dict[str, Any]:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise BadRequest("Form body is not valid UTF-8") from exc
    return _flatten(parse_qs(text, keep_blank_values=True))


def _parse_multipart(raw: bytes, content_type: str) -> ParsedBody:
    """Parse multipart form data using python-multipart callbacks."""
    from python_multipart.exceptions import MultipartParseError
    from python_multipart.multipart import MultipartParser, parse_options_header

    _, options = parse_options_header(content_type)
    boundary = options.get(b"boundary")
    if not boundary:
        msg = "Multipart form data missing boundary parameter"
        raise BadRequest(msg)

    fields: dict[str, list[str]] = {}
    files: dict[str, UploadFile] = {}

    headers: dict[str, str] = {}
    pending_header = ""
    chunk = bytearray()
    field_name: str | None = None
    filename: str | None = None

    def on_part_begin() -> None:
        nonlocal chunk, field_name, filename
        headers.clear()
        chunk = bytearray()
        field_name = None
        filename = None

    def on_part_data(data: bytes, start: int, end: int) -> None:
        chunk.extend(data[start:end])

    def on_part_end() -> None:
        if field_name is None:
            return
        if filename is not None:
            content = bytes(chunk)
            files[field_name] = UploadFile(
                field_name=field_name,
                filename=filename,
                content_type=headers.get("content-type", "application/octet-stream"),
                size=len(content),
                _content=content,
            )
        else:
            fields.setdefault(field_name, []).append(chunk.decode("utf-8", errors="replace"))

    def on_header_field(data: bytes, start: int, end: int) -> None:
        nonlocal pending_header
        pending_header = data[start:end].decode("latin-1").lower()

    def on_header_value(data: bytes, start: int, end: int) -> None:
        nonlocal field_name, filename
        value = data[start:end].decode("latin-1")
        headers[pending_header] = value
        if pending_header == "content-disposition":
            _, params = parse_options_header(value)
            name = params.get(b"name")
            if name is not None:
                field_name = name.decode("utf-8")
            fname = params.get(b"filename")
            if fname is not None:
                filename = fname.decode("utf-8")

    parser = MultipartParser(
        boundary,
        {
            "on_part_begin": on_part_begin,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
        },
    )
    try:
        parser.write(raw)
        parser.finalize()
    except MultipartParseError as exc:
        raise BadRequest(f"Malformed multipart body: {exc}") from exc

    return ParsedBody(data=_flatten(fields), files=FileManager(files))
