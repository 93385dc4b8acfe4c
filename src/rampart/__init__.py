"""Rampart: a request-lifecycle framework with three tiers of protection.

Every request passes global Walls, then per-controller Shields, then
per-action Guards before a controller action runs. Any tier can answer
the request itself.

Basic usage::

    from rampart import App, Controller, Guard, text_result

    class HelloController(Controller):
        def index(self):
            return text_result("Hello, World!")

    app = App()
    app.controller(HelloController, "/").default_action("index", methods=["GET"])
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "BadRequest",
    "ConfigurationError",
    "Controller",
    "Guard",
    "HTTPError",
    "HttpCookie",
    "MethodNotAllowed",
    "NotFound",
    "RampartError",
    "Request",
    "RequestContext",
    "Response",
    "ScheduleTask",
    "SessionProvider",
    "Shield",
    "Wall",
    "get_context",
    "html_result",
    "json_result",
    "redirect_result",
    "text_result",
    "view_result",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import rampart`` fast while providing a clean top-level API.
    """
    if name == "App":
        from rampart.app import App

        return App

    if name == "AppConfig":
        from rampart.config import AppConfig

        return AppConfig

    if name == "Controller":
        from rampart.controller import Controller

        return Controller

    if name in ("Wall", "Shield", "Guard"):
        from rampart import protection as _protection

        return getattr(_protection, name)

    if name == "Request":
        from rampart.http.request import Request

        return Request

    if name == "Response":
        from rampart.http.response import Response

        return Response

    if name == "HttpCookie":
        from rampart.http.cookies import HttpCookie

        return HttpCookie

    if name == "ScheduleTask":
        from rampart.scheduling import ScheduleTask

        return ScheduleTask

    if name == "SessionProvider":
        from rampart.sessions import SessionProvider

        return SessionProvider

    if name in ("RequestContext", "get_context"):
        from rampart import context as _ctx

        return getattr(_ctx, name)

    if name in ("html_result", "json_result", "redirect_result", "text_result", "view_result"):
        from rampart import results as _results

        return getattr(_results, name)

    if name in (
        "BadRequest",
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "RampartError",
    ):
        from rampart import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
