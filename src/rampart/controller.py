"""Controller base class.

A controller groups related actions. One instance is created per
request, with the complete ``RequestContext`` passed to the constructor,
and exactly one action method is invoked on it::

    class UserController(Controller):
        async def get_user(self):
            user = await users.find(self.params["id"])
            if user is None:
                return text_result("No such user", status=404)
            return json_result(user)

Actions may be sync or async and return any value the result
dispatcher understands (see ``rampart.results``).
"""

from typing import Any

from rampart.context import PendingResponse, RequestContext
from rampart.http.cookies import CookieManager
from rampart.http.forms import FileManager
from rampart.http.query import QueryParams
from rampart.http.request import Request
from rampart.sessions import SessionProvider


class Controller:
    """Base class for controllers; exposes the request context."""

    __slots__ = ("context",)

    def __init__(self, context: RequestContext) -> None:
        self.context = context

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
    def body(self) -> dict[str, Any]:
        return self.context.body

    @property
    def params(self) -> Any:
        return self.context.params

    @property
    def cookie(self) -> CookieManager | None:
        return self.context.cookie

    @property
    def session(self) -> SessionProvider | None:
        return self.context.session

    @property
    def data(self) -> dict[str, Any]:
        return self.context.data

    @property
    def file(self) -> FileManager:
        return self.context.file
