"""ActionRoute and RouteMatch frozen dataclasses."""

from dataclasses import dataclass, field
from types import MappingProxyType

from rampart._internal.types import Interceptor


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:  ``/users``      (is_param=False)
    Param:   ``/:id``        (is_param=True, param_name="id")
    Param:   ``/{id}``       (is_param=True, param_name="id")
    Typed:   ``/{id:int}``   (is_param=True, param_name="id", param_type="int")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class ActionRoute:
    """One controller action bound to a path pattern and HTTP methods.

    Created by the registration API, compiled into the router when the
    app freezes.
    """

    path: str
    methods: frozenset[str]
    controller: type
    action: str
    shields: tuple[Interceptor, ...] = ()
    guards: tuple[Interceptor, ...] = ()


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """The resolved binding of a request path + method.

    ``action`` is empty when the path is known but the method is not;
    ``allowed_methods`` then lists what the path does accept.
    """

    controller: type | None
    action: str
    params: MappingProxyType[str, str] = field(default_factory=lambda: MappingProxyType({}))
    shields: tuple[Interceptor, ...] = ()
    guards: tuple[Interceptor, ...] = ()
    allowed_methods: frozenset[str] = frozenset()
    route: ActionRoute | None = None
