"""Rampart application class.

Mutable during setup (walls, controllers, error handlers, hooks, tasks).
Frozen at runtime when ``__call__()`` is first invoked.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from rampart._internal.asgi import Receive, Scope, Send
from rampart._internal.invoke import invoke
from rampart._internal.types import ErrorHandler, Hook, Interceptor
from rampart.config import AppConfig
from rampart.routing.registry import ControllerRoutes, Registry, RegistryBuilder
from rampart.scheduling import ScheduleTask, TaskScheduler
from rampart.server.handler import RequestDispatcher
from rampart.server.negotiation import create_view_environment
from rampart.server.static import StaticResources
from rampart.sessions import MemorySessionProvider, SessionProvider

if TYPE_CHECKING:
    from kida import Environment

logger = logging.getLogger("rampart.server")


class App:
    """The rampart application.

    Usage::

        app = App(AppConfig(secret_key="s3cr3t"))
        app.wall(RequestLogger)

        users = app.controller(UserController, "/users", shields=[AuthShield])
        users.default_action("index", methods=["GET"])
        users.action("get_user", "/:id", methods=["GET"], guards=[UserIdGuard])

    Serve it with any ASGI server.

    Thread safety:
        The setup phase is single-threaded (declarations at import time).
        The freeze transition uses a Lock + double-check to ensure exactly
        one thread compiles the app, even when several workers call
        ``__call__()`` concurrently on first request.
    """

    __slots__ = (
        "_builder",
        "_custom_kida_env",
        "_dispatcher",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_registry",
        "_scheduler",
        "_session_provider",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        session_provider: type[SessionProvider] = MemorySessionProvider,
        kida_env: Environment | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._builder = RegistryBuilder()
        self._session_provider = session_provider
        self._custom_kida_env = kida_env
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._startup_hooks: list[Hook] = []
        self._shutdown_hooks: list[Hook] = []
        self._scheduler = TaskScheduler()
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state: set during _freeze()
        self._registry: Registry | None = None
        self._dispatcher: RequestDispatcher | None = None

    # -- Registration --

    def wall(self, interceptor: Interceptor) -> Interceptor:
        """Register a global wall. Usable as a decorator.

        Walls run in registration order for every request, before routing.
        """
        self._check_not_frozen()
        return self._builder.wall(interceptor)

    def controller(
        self,
        controller: type,
        prefix: str = "/",
        *,
        shields: Iterable[Interceptor] = (),
    ) -> ControllerRoutes:
        """Declare actions for *controller* under *prefix*.

        *shields* run for every action of this controller.
        """
        self._check_not_frozen()
        return self._builder.controller(controller, prefix, shields=shields)

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator."""

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Lifecycle hooks --

    def on_startup(self, func: Hook) -> Hook:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        before the server begins accepting HTTP requests.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Hook) -> Hook:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    def schedule(self, task: ScheduleTask) -> ScheduleTask:
        """Run *task* on its crontab schedule while the app is up.

        The scheduler starts after the startup hooks and stops before
        the shutdown hooks.
        """
        self._check_not_frozen()
        return self._scheduler.add(task)

    @property
    def scheduler(self) -> TaskScheduler:
        return self._scheduler

    @property
    def registry(self) -> Registry:
        """The compiled registry. Freezes the app on first access."""
        self._ensure_frozen()
        assert self._registry is not None
        return self._registry

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point.

        Handles the lifespan scope directly, then delegates HTTP scopes
        to the request dispatcher.
        """
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        if scope["type"] != "http":
            logger.debug("Ignoring unsupported ASGI scope type %r", scope["type"])
            return

        self._ensure_frozen()
        assert self._dispatcher is not None
        await self._dispatcher.handle(scope, receive, send)

    async def run_startup_hooks(self) -> None:
        for hook in self._startup_hooks:
            await invoke(hook)
        if self._scheduler.tasks:
            await self._scheduler.start()

    async def run_shutdown_hooks(self) -> None:
        await self._scheduler.stop()
        for hook in self._shutdown_hooks:
            await invoke(hook)

    async def _handle_lifespan(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before first HTTP request), then
        runs registered startup/shutdown hooks and signals completion
        back to the server.
        """
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.run_startup_hooks()
                except Exception as exc:
                    logger.exception("Startup hook failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await self.run_shutdown_hooks()
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        config = self.config

        # 1. Compile walls and the route table
        registry = self._builder.build()

        # 2. Static resources for unmatched paths
        static = None
        if config.static_dir is not None:
            static = StaticResources(
                config.static_dir,
                index=config.static_index,
                cache_control=config.static_cache_control,
            )

        # 3. View environment (user-provided or from template_dir)
        kida_env = self._custom_kida_env
        if kida_env is None and config.template_dir is not None:
            kida_env = create_view_environment(config.template_dir, debug=config.debug)

        self._registry = registry
        self._dispatcher = RequestDispatcher(
            registry,
            config,
            session_provider=self._session_provider,
            static=static,
            error_handlers=self._error_handlers,
            kida_env=kida_env,
        )
        self._frozen = True
        logger.debug(
            "%s frozen: %d wall(s), %d route(s)",
            config.app_name,
            len(registry.walls),
            len(registry.router.routes),
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register walls, controllers, and handlers before the first request."
            )
            raise RuntimeError(msg)
