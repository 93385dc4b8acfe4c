"""Request dispatcher: drives one HTTP request through the pipeline.

The only component that touches raw ASGI directly. For each request it
walks a fixed sequence of states::

    INIT -> COOKIE_BOUND -> WALL_CHECKED -> ROUTED -> SHIELD_CHECKED
         -> BODY_PARSED -> GUARD_CHECKED -> DISPATCHED -> COMPLETED | FAILED

A Wall, Shield, or Guard that returns a result jumps straight to
DISPATCHED with that result. Unmatched paths leave the state machine at
WALL_CHECKED and go to the static-resource collaborator. Every exception
is caught once, at the top, and handed to the error sink.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from contextvars import Token
from dataclasses import replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from rampart._internal.asgi import Receive, Scope, Send
from rampart._internal.invoke import invoke
from rampart.config import AppConfig
from rampart.context import RequestContext, context_var
from rampart.errors import ClientDisconnected, HTTPError, MethodNotAllowed, NotFound
from rampart.http.cookies import CookieManager, parse_cookies
from rampart.http.forms import ParsedBody, parse_body
from rampart.http.request import Request
from rampart.http.response import Response
from rampart.protection import Checkpoint, Tier, Wall, bind_checkpoints, run_checkpoints, run_tier
from rampart.routing.registry import Registry
from rampart.server.errors import handle_http_error, handle_internal_error
from rampart.server.negotiation import negotiate
from rampart.server.sender import send_response
from rampart.server.static import StaticResources
from rampart.sessions import MemorySessionProvider, SessionIdCodec, SessionProvider

if TYPE_CHECKING:
    from kida import Environment

logger = logging.getLogger("rampart.server")

# Methods whose body is never read
BODYLESS_METHODS: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS"})

type BodyParser = Callable[..., Awaitable[ParsedBody]]

_UNSENDABLE = Response(
    body="Internal Server Error", status=500, content_type="text/plain; charset=utf-8"
)


class DispatchState(StrEnum):
    INIT = "init"
    COOKIE_BOUND = "cookie_bound"
    WALL_CHECKED = "wall_checked"
    ROUTED = "routed"
    SHIELD_CHECKED = "shield_checked"
    BODY_PARSED = "body_parsed"
    GUARD_CHECKED = "guard_checked"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    FAILED = "failed"


class RequestRun:
    """State of one in-flight request. Never shared between requests."""

    __slots__ = ("context", "state", "walls")

    def __init__(self, request: Request) -> None:
        self.context = RequestContext(request=request)
        self.state = DispatchState.INIT
        self.walls: list[Checkpoint] = []

    @property
    def request(self) -> Request:
        return self.context.request

    def advance(self, state: DispatchState) -> None:
        logger.debug(
            "%s %s: %s -> %s", self.request.method, self.request.path, self.state, state
        )
        self.state = state


class RequestDispatcher:
    """Sequences cookie binding, the three protection tiers, routing,
    body parsing, and action invocation for every request.

    Holds only immutable, shared collaborators; all per-request state
    lives in a ``RequestRun``.
    """

    __slots__ = (
        "_body_parser",
        "_codec",
        "_config",
        "_error_handlers",
        "_kida_env",
        "_registry",
        "_session_provider",
        "_static",
    )

    def __init__(
        self,
        registry: Registry,
        config: AppConfig,
        *,
        session_provider: type[SessionProvider] = MemorySessionProvider,
        static: StaticResources | None = None,
        body_parser: BodyParser = parse_body,
        error_handlers: Mapping[int | type, Callable[..., Any]] | None = None,
        kida_env: Environment | None = None,
    ) -> None:
        self._registry = registry
        self._config = config
        self._session_provider = session_provider
        self._static = static
        self._body_parser = body_parser
        self._error_handlers = dict(error_handlers or {})
        self._kida_env = kida_env
        self._codec = SessionIdCodec(config.secret_key)

    async def handle(self, scope: Scope, receive: Receive, send: Send) -> DispatchState:
        """Process a single HTTP request and return its final state."""
        run = RequestRun(Request.from_asgi(scope, receive))
        token: Token[RequestContext] = context_var.set(run.context)

        try:
            self._set_pre_headers(run.context)
            response = await self._execute(run)
        except ClientDisconnected:
            logger.info("Client disconnected: %s %s", run.request.method, run.request.path)
            run.advance(DispatchState.FAILED)
            return run.state
        except HTTPError as exc:
            response = await handle_http_error(
                exc, run.request, self._error_handlers, self._kida_env, self._config.debug
            )
            run.advance(DispatchState.COMPLETED)
        except Exception as exc:
            run.advance(DispatchState.FAILED)
            response = await handle_internal_error(
                exc, run.request, self._error_handlers, self._kida_env, self._config.debug
            )
        finally:
            context_var.reset(token)

        await self._send(run, self._finalize(run.context, response), send)
        return run.state

    async def _send(self, run: RequestRun, response: Response, send: Send) -> None:
        """Write *response*; unsendable headers fall back to a bare 500."""
        head = run.request.method == "HEAD"
        try:
            try:
                await send_response(response, send, head=head)
            except UnicodeEncodeError:
                # Raised while encoding headers, before anything was sent
                logger.exception(
                    "Unencodable response header for %s %s", run.request.method, run.request.path
                )
                run.advance(DispatchState.FAILED)
                await send_response(_UNSENDABLE, send, head=head)
        except OSError:
            logger.warning(
                "Transport error sending %s %s", run.request.method, run.request.path,
                exc_info=True,
            )
            run.advance(DispatchState.FAILED)

    # -- State machine --

    async def _execute(self, run: RequestRun) -> Response:
        ctx = run.context
        request = run.request

        self._bind_cookies(ctx)
        run.advance(DispatchState.COOKIE_BOUND)

        run.walls = bind_checkpoints(Tier.WALL, self._registry.walls, ctx)
        result = await run_checkpoints(Tier.WALL, run.walls)
        run.advance(DispatchState.WALL_CHECKED)
        if result is not None:
            return await self._deliver(run, result)

        match = self._registry.router.match(request.path, request.method)
        if match is None:
            return self._serve_static(request)
        run.advance(DispatchState.ROUTED)
        if match.controller is None or not match.action:
            raise MethodNotAllowed(match.allowed_methods)

        result = await run_tier(Tier.SHIELD, match.shields, ctx)
        run.advance(DispatchState.SHIELD_CHECKED)
        if result is not None:
            return await self._deliver(run, result)

        await self._read_body(ctx)
        run.advance(DispatchState.BODY_PARSED)

        ctx.params = match.params
        result = await run_tier(Tier.GUARD, match.guards, ctx)
        run.advance(DispatchState.GUARD_CHECKED)
        if result is not None:
            return await self._deliver(run, result)

        controller = match.controller(ctx)
        run.advance(DispatchState.DISPATCHED)
        result = await invoke(getattr(controller, match.action))
        return await self._deliver(run, result)

    # -- Steps --

    def _set_pre_headers(self, ctx: RequestContext) -> None:
        ctx.response.set_header("X-Powered-By", self._config.app_name)
        ctx.response.set_header("Vary", "Accept-Encoding")

    def _bind_cookies(self, ctx: RequestContext) -> None:
        """Parse the Cookie header and bind the session to its id."""
        if not self._config.parse_cookies:
            return
        cookie = CookieManager(parse_cookies(ctx.request.headers.get("cookie")))
        session_id = self._codec.decode(
            cookie.get_cookie(self._config.session_cookie_name).value
        )
        ctx.cookie = cookie
        ctx.session = self._session_provider(session_id, cookie, self._config)

    async def _read_body(self, ctx: RequestContext) -> None:
        """Materialize the body. Parse errors surface as ``BadRequest``."""
        request = ctx.request
        if request.method in BODYLESS_METHODS or not self._config.parse_body:
            return
        parsed = await self._body_parser(request, limit=self._config.max_content_length)
        ctx.body = parsed.data
        ctx.file = parsed.files

    def _serve_static(self, request: Request) -> Response:
        logger.debug("No route for %s %s; trying static resources", request.method, request.path)
        if self._static is None or request.method not in ("GET", "HEAD"):
            raise NotFound(f"No route matches {request.method} {request.path!r}")
        return self._static.serve(request.path)

    async def _deliver(self, run: RequestRun, result: Any) -> Response:
        """Serialize a terminal result and let walls see the response."""
        if run.state is not DispatchState.DISPATCHED:
            run.advance(DispatchState.DISPATCHED)
        response = negotiate(result, kida_env=self._kida_env)
        for checkpoint in run.walls:
            if isinstance(checkpoint.instance, Wall):
                amended = await checkpoint.instance.on_outgoing(response)
                if amended is not None:
                    response = amended
        run.advance(DispatchState.COMPLETED)
        return response

    def _finalize(self, ctx: RequestContext, response: Response) -> Response:
        """Prepend queued headers and append outbound cookies."""
        response = replace(response, headers=(*ctx.response.headers, *response.headers))
        if ctx.cookie is not None:
            response = response.with_cookies(ctx.cookie.response_cookies)
        return response
