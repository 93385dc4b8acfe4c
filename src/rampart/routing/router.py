"""Compiled router with trie-based path matching.

Action routes are registered during setup and compiled into an immutable
lookup structure when the app freezes. Matching never raises: a miss is
``None`` and a wrong method is a ``RouteMatch`` with an empty action, so
the dispatcher can tell 404 from 405 without exception plumbing.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from types import MappingProxyType

from rampart.errors import ConfigurationError
from rampart.routing.route import ActionRoute, PathSegment, RouteMatch

# (regex_pattern) for each supported converter
CONVERTERS: dict[str, str] = {
    "str": r"[^/]+",
    "int": r"\d+",
    "float": r"\d+(?:\.\d+)?",
    "path": r".+",
}

_FLASK_STYLE = re.compile(r"<[^>]*>")


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/users"             -> [PathSegment("users")]
        "/users/:id"         -> [PathSegment("users"), PathSegment(":id", is_param=True, ...)]
        "/users/{id:int}"    -> [..., PathSegment("{id:int}", is_param=True, param_type="int")]
        "/files/{rest:path}" -> [..., PathSegment("{rest:path}", is_param=True, param_type="path")]

    Static segments are lower-cased: matching is case-insensitive.
    """
    if _FLASK_STYLE.search(path):
        msg = f"Route {path!r} uses <param> syntax; use :param or {{param}} instead."
        raise ConfigurationError(msg)

    segments: list[PathSegment] = []
    for part in path.strip("/").split("/"):
        if not part:
            continue
        if part.startswith(":"):
            segments.append(PathSegment(value=part, is_param=True, param_name=part[1:]))
        elif part.startswith("{") and part.endswith("}"):
            inner = part[1:-1]
            param_name, _, param_type = inner.partition(":")
            param_type = param_type or "str"
            if param_type not in CONVERTERS:
                msg = f"Unknown converter {param_type!r} in route {path!r}."
                raise ConfigurationError(msg)
            segments.append(
                PathSegment(
                    value=part,
                    is_param=True,
                    param_name=param_name,
                    param_type=param_type,
                )
            )
        else:
            segments.append(PathSegment(value=part.lower()))
    return segments


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("catch_all", "children", "param_child", "routes_by_method")

    def __init__(self) -> None:
        self.children: dict[str, _TrieNode] = {}
        self.param_child: _ParamEdge | None = None
        self.catch_all: _CatchAllEdge | None = None
        self.routes_by_method: dict[str, ActionRoute] = {}


@dataclass(slots=True)
class _ParamEdge:
    param_name: str
    param_type: str
    regex: re.Pattern[str]
    node: _TrieNode


@dataclass(slots=True)
class _CatchAllEdge:
    param_name: str
    node: _TrieNode


class Router:
    """Compiled router with trie-based path matching.

    Usage::

        router = Router()
        router.add(ActionRoute("/users/:id", frozenset({"GET"}), UserController, "get"))
        router.compile()
        match = router.match("/users/42", "GET")
    """

    __slots__ = ("_compiled", "_root", "_routes")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._compiled = False
        self._routes: list[ActionRoute] = []

    def add(self, route: ActionRoute) -> None:
        """Add a route. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        node = self._root
        for seg in parse_path(route.path):
            if seg.is_param and seg.param_type == "path":
                if node.catch_all is None:
                    node.catch_all = _CatchAllEdge(seg.param_name or "path", _TrieNode())
                node = node.catch_all.node
                break
            if seg.is_param:
                name = seg.param_name or ""
                if node.param_child is None:
                    node.param_child = _ParamEdge(
                        param_name=name,
                        param_type=seg.param_type,
                        regex=re.compile(f"^{CONVERTERS[seg.param_type]}$"),
                        node=_TrieNode(),
                    )
                elif (node.param_child.param_name, node.param_child.param_type) != (
                    name,
                    seg.param_type,
                ):
                    msg = (
                        f"Route {route.path!r} declares parameter {seg.value!r} where "
                        f"another route already declared "
                        f"{node.param_child.param_name!r}:{node.param_child.param_type}."
                    )
                    raise ConfigurationError(msg)
                node = node.param_child.node
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        for method in route.methods:
            existing = node.routes_by_method.get(method)
            if existing is not None:
                msg = (
                    f"{method} {route.path!r} is already bound to "
                    f"{existing.controller.__name__}.{existing.action}."
                )
                raise ConfigurationError(msg)
            node.routes_by_method[method] = route
        self._routes.append(route)

    @property
    def routes(self) -> tuple[ActionRoute, ...]:
        """Every registered route, in registration order."""
        return tuple(self._routes)

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, path: str, method: str) -> RouteMatch | None:
        """Resolve *path* and *method* to a route.

        Candidates are tried in priority order (static, then param, then
        catch-all) and the first one bound to *method* wins. Returns
        ``None`` when no pattern matches the path. Returns a ``RouteMatch``
        with an empty ``action`` when patterns match but none accepts
        *method*; ``allowed_methods`` is then the union over all of them.
        """
        parts = [p for p in path.strip("/").split("/") if p]
        method = method.upper()
        allowed: set[str] = set()
        first_params: dict[str, str] | None = None

        for node, params in self._iter_matches(self._root, parts, 0, {}):
            route = node.routes_by_method.get(method)
            if route is not None:
                return RouteMatch(
                    controller=route.controller,
                    action=route.action,
                    params=MappingProxyType(params),
                    shields=route.shields,
                    guards=route.guards,
                    allowed_methods=frozenset(node.routes_by_method),
                    route=route,
                )
            allowed.update(node.routes_by_method)
            if first_params is None:
                first_params = params

        if first_params is None:
            return None
        return RouteMatch(
            controller=None,
            action="",
            params=MappingProxyType(first_params),
            allowed_methods=frozenset(allowed),
        )

    def _iter_matches(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
    ) -> Iterator[tuple[_TrieNode, dict[str, str]]]:
        """Yield every terminal node matching *parts*: static, then param, then catch-all."""
        if index == len(parts):
            if node.routes_by_method:
                yield node, params
            return

        part = parts[index]

        child = node.children.get(part.lower())
        if child is not None:
            yield from self._iter_matches(child, parts, index + 1, params)

        if node.param_child is not None:
            edge = node.param_child
            if edge.regex.match(part):
                yield from self._iter_matches(
                    edge.node, parts, index + 1, {**params, edge.param_name: part}
                )

        if node.catch_all is not None and node.catch_all.node.routes_by_method:
            remaining = "/".join(parts[index:])
            yield node.catch_all.node, {**params, node.catch_all.param_name: remaining}
