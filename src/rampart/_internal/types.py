"""Shared type aliases used across rampart modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Wall/Shield/Guard: a tier subclass, or any callable taking the context
Interceptor: TypeAlias = Callable[..., Any]

# Error handler: receives (request, error?) and returns a result value
ErrorHandler: TypeAlias = Callable[..., Any]

# Lifecycle hook: sync or async, no arguments
Hook: TypeAlias = Callable[[], Any]
