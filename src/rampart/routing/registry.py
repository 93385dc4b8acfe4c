"""Registration API and the immutable Registry it produces.

Routes and walls are declared explicitly at startup::

    builder = RegistryBuilder()
    builder.wall(RequestLogger)

    users = builder.controller(UserController, "/users", shields=[AuthShield])
    users.default_action("index", methods=["GET"])
    users.action("get_user", "/:id", methods=["GET"], guards=[UserIdGuard])

    registry = builder.build()

``App`` wraps a builder and calls ``build()`` when it freezes. The
resulting ``Registry`` is shared by reference across every request and
never mutated.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from rampart._internal.types import Interceptor
from rampart.errors import ConfigurationError
from rampart.protection import Tier, validate_interceptor
from rampart.routing.route import ActionRoute
from rampart.routing.router import Router

HTTP_METHODS: frozenset[str] = frozenset(
    {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}
)


def join_path(prefix: str, path: str) -> str:
    """Join a controller prefix and an action path into one pattern."""
    joined = "/".join(p for p in (prefix.strip("/"), path.strip("/")) if p)
    return "/" + joined


def _normalize_methods(methods: Iterable[str] | None) -> frozenset[str]:
    if methods is None:
        return HTTP_METHODS
    normalized = frozenset(m.upper() for m in methods)
    unknown = normalized - HTTP_METHODS
    if unknown:
        msg = f"Unknown HTTP method(s): {', '.join(sorted(unknown))}"
        raise ConfigurationError(msg)
    if not normalized:
        msg = "An action must accept at least one HTTP method."
        raise ConfigurationError(msg)
    return normalized


@dataclass(frozen=True, slots=True)
class Registry:
    """Walls plus the compiled router. Built once, read-only afterwards."""

    walls: tuple[Interceptor, ...]
    router: Router


class ControllerRoutes:
    """Declares the actions of one controller under a path prefix."""

    __slots__ = ("_builder", "controller", "prefix", "shields")

    def __init__(
        self,
        builder: RegistryBuilder,
        controller: type,
        prefix: str,
        shields: tuple[Interceptor, ...],
    ) -> None:
        self._builder = builder
        self.controller = controller
        self.prefix = prefix
        self.shields = shields

    def action(
        self,
        name: str,
        path: str | None = None,
        *,
        methods: Iterable[str] | None = None,
        guards: Iterable[Interceptor] = (),
    ) -> ControllerRoutes:
        """Bind controller method *name* to ``prefix + path``.

        *path* defaults to ``/<name>``; *methods* defaults to every
        HTTP method. Returns self so declarations can be chained.
        """
        if not callable(getattr(self.controller, name, None)):
            msg = f"{self.controller.__name__} has no action method {name!r}."
            raise ConfigurationError(msg)
        guards = tuple(guards)
        for guard in guards:
            validate_interceptor(Tier.GUARD, guard)
        self._builder.add_route(
            ActionRoute(
                path=join_path(self.prefix, f"/{name}" if path is None else path),
                methods=_normalize_methods(methods),
                controller=self.controller,
                action=name,
                shields=self.shields,
                guards=guards,
            )
        )
        return self

    def default_action(
        self,
        name: str,
        *,
        methods: Iterable[str] | None = None,
        guards: Iterable[Interceptor] = (),
    ) -> ControllerRoutes:
        """Bind *name* to the controller prefix itself."""
        return self.action(name, "/", methods=methods, guards=guards)


class RegistryBuilder:
    """Collects wall and route declarations; ``build()`` freezes them."""

    __slots__ = ("_built", "_routes", "_walls")

    def __init__(self) -> None:
        self._walls: list[Interceptor] = []
        self._routes: list[ActionRoute] = []
        self._built = False

    def wall(self, interceptor: Interceptor) -> Interceptor:
        """Register a global wall. Usable as a class decorator."""
        self._check_not_built()
        validate_interceptor(Tier.WALL, interceptor)
        self._walls.append(interceptor)
        return interceptor

    def controller(
        self,
        controller: type,
        prefix: str = "/",
        *,
        shields: Iterable[Interceptor] = (),
    ) -> ControllerRoutes:
        """Start declaring actions for *controller* under *prefix*."""
        self._check_not_built()
        shields = tuple(shields)
        for shield in shields:
            validate_interceptor(Tier.SHIELD, shield)
        return ControllerRoutes(self, controller, prefix, shields)

    def add_route(self, route: ActionRoute) -> None:
        self._check_not_built()
        self._routes.append(route)

    @property
    def routes(self) -> tuple[ActionRoute, ...]:
        return tuple(self._routes)

    def build(self) -> Registry:
        """Compile every declaration into a ``Registry``."""
        router = Router()
        for route in self._routes:
            router.add(route)
        router.compile()
        self._built = True
        return Registry(walls=tuple(self._walls), router=router)

    def _check_not_built(self) -> None:
        if self._built:
            msg = "Cannot register walls or routes after the registry is built."
            raise RuntimeError(msg)
