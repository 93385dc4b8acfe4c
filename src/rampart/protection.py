"""Three-tier request protection: Walls, Shields, and Guards.

Every tier follows the same contract. An interceptor looks at the
request context and returns ``None`` to let the request through, or any
result value to answer the request itself (short-circuit).

==========  ======================================  ====================
Tier        Runs                                    Declared
==========  ======================================  ====================
``Wall``    before routing, for every request       globally
``Shield``  after routing, before body parsing      per controller
``Guard``   after body parsing, before the action   per action
==========  ======================================  ====================

An interceptor is either a subclass of the tier's base class::

    class ApiKeyWall(Wall):
        async def evaluate(self):
            if self.request.headers.get("x-api-key") != KEY:
                return text_result("Forbidden", status=403)
            return None

or any callable (sync or async) that takes the ``RequestContext``::

    async def maintenance_wall(ctx: RequestContext):
        return text_result("Back soon", status=503) if MAINTENANCE else None

Within a tier, every check is started before any is awaited and all of
them run to completion. The outcome is the first non-None result in
registration order, never in completion order.
"""

from __future__ import annotations

import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from enum import StrEnum
from typing import Any, ClassVar

import anyio

from rampart._internal.invoke import invoke
from rampart._internal.types import Interceptor
from rampart.context import PendingResponse, RequestContext
from rampart.errors import ConfigurationError, HTTPError, InterceptorFailure
from rampart.http.cookies import CookieManager
from rampart.http.forms import FileManager
from rampart.http.query import QueryParams
from rampart.http.request import Request
from rampart.http.response import Response
from rampart.sessions import SessionProvider

logger = logging.getLogger("rampart.protection")


class Tier(StrEnum):
    WALL = "wall"
    SHIELD = "shield"
    GUARD = "guard"


class _Checkpoint(ABC):
    """Common base for class-based interceptors.

    Constructed once per request with the full context; nothing is
    assigned after construction.
    """

    tier: ClassVar[Tier]

    __slots__ = ("context",)

    def __init__(self, context: RequestContext) -> None:
        self.context = context

    @abstractmethod
    async def evaluate(self) -> Any:
        """Return None to pass, or a result to answer the request."""

    @property
    def request(self) -> Request:
        return self.context.request

    @property
    def response(self) -> PendingResponse:
        return self.context.response

    @property
    def query(self) -> QueryParams:
        return self.context.query

    @property
    def cookie(self) -> CookieManager | None:
        return self.context.cookie

    @property
    def session(self) -> SessionProvider | None:
        return self.context.session

    @property
    def data(self) -> dict[str, Any]:
        return self.context.data


class Wall(_Checkpoint):
    """Global interceptor evaluated for every request before routing.

    Walls also see the final response through ``on_outgoing``.
    """

    tier = Tier.WALL
    __slots__ = ()

    async def on_outgoing(self, response: Response) -> Response | None:
        """Amend the final response. Return None to keep it unchanged."""
        return None


class Shield(_Checkpoint):
    """Interceptor for a matched route, evaluated before body parsing."""

    tier = Tier.SHIELD
    __slots__ = ()


class Guard(_Checkpoint):
    """Interceptor for a matched action, evaluated after body parsing."""

    tier = Tier.GUARD
    __slots__ = ()

    @property
    def body(self) -> dict[str, Any]:
        return self.context.body

    @property
    def params(self) -> Any:
        return self.context.params

    @property
    def file(self) -> FileManager:
        return self.context.file


_BASES: dict[Tier, type[_Checkpoint]] = {
    Tier.WALL: Wall,
    Tier.SHIELD: Shield,
    Tier.GUARD: Guard,
}


def validate_interceptor(tier: Tier, interceptor: Interceptor) -> None:
    """Reject interceptors declared for the wrong tier.

    Raises ``ConfigurationError`` when *interceptor* is a class based on
    another tier's base class, or is not callable at all.
    """
    if isinstance(interceptor, type):
        if issubclass(interceptor, _Checkpoint) and not issubclass(interceptor, _BASES[tier]):
            msg = (
                f"{interceptor.__name__} is a {interceptor.tier} and cannot be "
                f"registered as a {tier}."
            )
            raise ConfigurationError(msg)
        return
    if not callable(interceptor):
        msg = f"{interceptor!r} is not a valid {tier}: expected a class or callable."
        raise ConfigurationError(msg)


def interceptor_name(interceptor: Interceptor) -> str:
    return getattr(interceptor, "__qualname__", None) or type(interceptor).__name__


class Checkpoint:
    """One interceptor bound to one request's context."""

    __slots__ = ("check", "instance", "name")

    def __init__(self, interceptor: Interceptor, context: RequestContext) -> None:
        self.name = interceptor_name(interceptor)
        self.instance: _Checkpoint | None = None
        if isinstance(interceptor, type) and issubclass(interceptor, _Checkpoint):
            self.instance = interceptor(context)
            self.check: Callable[[], Awaitable[Any] | Any] = self.instance.evaluate
        else:
            self.check = functools.partial(interceptor, context)


def bind_checkpoints(
    tier: Tier,
    interceptors: Sequence[Interceptor],
    context: RequestContext,
) -> list[Checkpoint]:
    """Instantiate every interceptor of a tier for this request."""
    checkpoints: list[Checkpoint] = []
    for interceptor in interceptors:
        try:
            checkpoints.append(Checkpoint(interceptor, context))
        except Exception as exc:
            raise InterceptorFailure(tier, interceptor_name(interceptor)) from exc
    return checkpoints


async def run_checkpoints(tier: Tier, checkpoints: Sequence[Checkpoint]) -> Any:
    """Run every check concurrently; return the first non-None by position.

    All checks are started inside one task group before any completes,
    and the group is awaited in full, so every check's side effects
    finish before the outcome is chosen. A failing check fails the tier
    with ``InterceptorFailure`` (HTTP errors propagate unchanged); when
    several fail, the first by position is reported.
    """
    if not checkpoints:
        return None

    results: list[Any] = [None] * len(checkpoints)
    errors: list[Exception | None] = [None] * len(checkpoints)

    async def _run(index: int, checkpoint: Checkpoint) -> None:
        try:
            results[index] = await invoke(checkpoint.check)
        except Exception as exc:
            errors[index] = exc

    async with anyio.create_task_group() as tg:
        for index, checkpoint in enumerate(checkpoints):
            tg.start_soon(_run, index, checkpoint)

    for checkpoint, exc in zip(checkpoints, errors, strict=True):
        if exc is None:
            continue
        if isinstance(exc, HTTPError):
            raise exc
        raise InterceptorFailure(tier, checkpoint.name) from exc

    for checkpoint, result in zip(checkpoints, results, strict=True):
        if result is not None:
            logger.debug("%s %s short-circuited the request", tier, checkpoint.name)
            return result
    return None


async def run_tier(
    tier: Tier,
    interceptors: Sequence[Interceptor],
    context: RequestContext,
) -> Any:
    """Bind and run one tier. Returns None when every interceptor passes."""
    return await run_checkpoints(tier, bind_checkpoints(tier, interceptors, context))
