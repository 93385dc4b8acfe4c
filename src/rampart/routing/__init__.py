"""Routing: compiled route table and the startup-built registry."""

from rampart.routing.registry import ControllerRoutes, Registry, RegistryBuilder
from rampart.routing.route import ActionRoute, RouteMatch
from rampart.routing.router import Router

__all__ = [
    "ActionRoute",
    "ControllerRoutes",
    "Registry",
    "RegistryBuilder",
    "RouteMatch",
    "Router",
]
