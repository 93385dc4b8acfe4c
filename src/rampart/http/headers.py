"""Immutable, case-insensitive HTTP headers built from ASGI byte pairs."""

from collections.abc import Iterator, Mapping


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive request headers.

    Raw byte pairs are decoded once at construction and indexed by
    lower-cased name. ``__getitem__`` returns the first value,
    ``get_list`` every value in arrival order.
    """

    __slots__ = ("_index", "_raw")

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        index: dict[str, list[str]] = {}
        for name, value in raw:
            index.setdefault(name.decode("latin-1").lower(), []).append(value.decode("latin-1"))
        self._raw = raw
        self._index = index

    def __getitem__(self, key: str) -> str:
        return self._index[key.lower()][0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"Headers({ {k: v[0] for k, v in self._index.items()}!r})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._index.get(key.lower())
        return values[0] if values else default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key* (e.g. several ``Set-Cookie`` lines)."""
        return list(self._index.get(key.lower(), ()))

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        """Raw header byte pairs as received from the server."""
        return self._raw


def check_header_value(name: str, value: str) -> str:
    """Return *value* if it can be written as the value of header *name*.

    Raises ``ValueError`` for line breaks or characters outside latin-1.
    """
    if "\r" in value or "\n" in value:
        msg = f"Header {name!r} value contains a line break: {value!r}"
        raise ValueError(msg)
    try:
        value.encode("latin-1")
    except UnicodeEncodeError as exc:
        msg = f"Header {name!r} value is not latin-1 encodable: {value!r}"
        raise ValueError(msg) from exc
    return value
