"""Tests for rampart.routing: trie router and the registration API."""

import pytest

from rampart.controller import Controller
from rampart.errors import ConfigurationError
from rampart.protection import Guard, Shield, Wall
from rampart.routing.registry import HTTP_METHODS, RegistryBuilder, join_path
from rampart.routing.route import ActionRoute
from rampart.routing.router import Router, parse_path


class UserController(Controller):
    def index(self) -> str:
        return "index"

    def get_user(self) -> str:
        return "user"

    def save(self) -> str:
        return "saved"


def _route(
    path: str,
    methods: frozenset[str] = frozenset({"GET"}),
    action: str = "index",
) -> ActionRoute:
    return ActionRoute(path=path, methods=methods, controller=UserController, action=action)


def _router(*routes: ActionRoute) -> Router:
    router = Router()
    for route in routes:
        router.add(route)
    router.compile()
    return router


class TestParsePath:
    def test_static(self) -> None:
        segments = parse_path("/users")
        assert len(segments) == 1
        assert segments[0].value == "users"
        assert segments[0].is_param is False

    def test_colon_param(self) -> None:
        segments = parse_path("/users/:id")
        assert segments[1].is_param is True
        assert segments[1].param_name == "id"
        assert segments[1].param_type == "str"

    def test_brace_param(self) -> None:
        segments = parse_path("/users/{id}")
        assert segments[1].param_name == "id"

    def test_typed_param(self) -> None:
        segments = parse_path("/users/{id:int}")
        assert segments[1].param_type == "int"

    def test_root(self) -> None:
        assert parse_path("/") == []

    def test_static_segments_lowercased(self) -> None:
        assert [s.value for s in parse_path("/API/Users")] == ["api", "users"]

    def test_rejects_angle_bracket_param(self) -> None:
        with pytest.raises(ConfigurationError, match="<param>"):
            parse_path("/share/<slug>")

    def test_rejects_unknown_converter(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown converter"):
            parse_path("/users/{id:uuid}")


class TestRouterMatch:
    def test_static_match(self) -> None:
        match = _router(_route("/users")).match("/users", "GET")
        assert match is not None
        assert match.controller is UserController
        assert match.action == "index"
        assert dict(match.params) == {}

    def test_root(self) -> None:
        match = _router(_route("/")).match("/", "GET")
        assert match is not None
        assert match.action == "index"

    def test_trailing_slash_ignored(self) -> None:
        assert _router(_route("/users")).match("/users/", "GET") is not None

    def test_param_extraction(self) -> None:
        match = _router(_route("/users/:id", action="get_user")).match("/users/42", "GET")
        assert match is not None
        assert match.params["id"] == "42"

    def test_params_are_read_only(self) -> None:
        match = _router(_route("/users/:id")).match("/users/42", "GET")
        assert match is not None
        with pytest.raises(TypeError):
            match.params["id"] = "7"  # type: ignore[index]

    def test_case_insensitive_static_segments(self) -> None:
        match = _router(_route("/users/:id")).match("/USERS/AbC", "GET")
        assert match is not None
        assert match.params["id"] == "AbC"

    def test_method_is_case_insensitive(self) -> None:
        assert _router(_route("/users")).match("/users", "get") is not None

    def test_int_converter_rejects_text(self) -> None:
        router = _router(_route("/items/{id:int}"))
        assert router.match("/items/abc", "GET") is None
        assert router.match("/items/12", "GET") is not None

    def test_float_converter(self) -> None:
        match = _router(_route("/price/{amount:float}")).match("/price/9.99", "GET")
        assert match is not None
        assert match.params["amount"] == "9.99"

    def test_path_catch_all(self) -> None:
        match = _router(_route("/files/{rest:path}")).match("/files/a/b/c.txt", "GET")
        assert match is not None
        assert match.params["rest"] == "a/b/c.txt"

    def test_static_beats_param(self) -> None:
        router = _router(
            _route("/users/me", action="index"),
            _route("/users/:id", action="get_user"),
        )
        me = router.match("/users/me", "GET")
        other = router.match("/users/7", "GET")
        assert me is not None and me.action == "index"
        assert other is not None and other.action == "get_user"

    def test_no_pattern_returns_none(self) -> None:
        assert _router(_route("/users")).match("/nothing", "GET") is None

    def test_prefix_only_returns_none(self) -> None:
        assert _router(_route("/users/:id")).match("/users", "GET") is None


class TestRouterMethodMismatch:
    def test_wrong_method_yields_empty_action(self) -> None:
        match = _router(_route("/users", frozenset({"GET"}))).match("/users", "POST")
        assert match is not None
        assert match.action == ""
        assert match.controller is None
        assert match.allowed_methods == frozenset({"GET"})

    def test_allowed_methods_union(self) -> None:
        router = _router(
            _route("/users", frozenset({"GET"}), "index"),
            _route("/users", frozenset({"POST"}), "save"),
        )
        match = router.match("/users", "DELETE")
        assert match is not None
        assert match.allowed_methods == frozenset({"GET", "POST"})

    def test_same_path_different_methods(self) -> None:
        router = _router(
            _route("/users", frozenset({"GET"}), "index"),
            _route("/users", frozenset({"POST"}), "save"),
        )
        post = router.match("/users", "POST")
        assert post is not None
        assert post.action == "save"

    def test_param_route_serves_method_static_route_lacks(self) -> None:
        router = _router(
            _route("/users/me", frozenset({"GET"}), "index"),
            _route("/users/:id", frozenset({"POST"}), "save"),
        )
        match = router.match("/users/me", "POST")
        assert match is not None
        assert match.action == "save"
        assert match.params["id"] == "me"

    def test_catch_all_serves_method_param_route_lacks(self) -> None:
        router = _router(
            _route("/files/:name", frozenset({"GET"}), "index"),
            _route("/files/{rest:path}", frozenset({"PUT"}), "save"),
        )
        match = router.match("/files/a.txt", "PUT")
        assert match is not None
        assert match.action == "save"
        assert match.params["rest"] == "a.txt"

    def test_allowed_methods_cover_every_matching_pattern(self) -> None:
        router = _router(
            _route("/users/me", frozenset({"GET"}), "index"),
            _route("/users/:id", frozenset({"POST"}), "save"),
        )
        match = router.match("/users/me", "DELETE")
        assert match is not None
        assert match.action == ""
        assert match.allowed_methods == frozenset({"GET", "POST"})


class TestRouterConflicts:
    def test_duplicate_method_rejected(self) -> None:
        router = Router()
        router.add(_route("/users"))
        with pytest.raises(ConfigurationError, match="already bound"):
            router.add(_route("/users", action="save"))

    def test_conflicting_param_names_rejected(self) -> None:
        router = Router()
        router.add(_route("/users/:id"))
        with pytest.raises(ConfigurationError):
            router.add(_route("/users/:name/posts"))

    def test_add_after_compile_rejected(self) -> None:
        router = _router(_route("/users"))
        with pytest.raises(RuntimeError):
            router.add(_route("/other"))


class AuthShield(Shield):
    async def evaluate(self) -> None:
        return None


class IdGuard(Guard):
    async def evaluate(self) -> None:
        return None


class LogWall(Wall):
    async def evaluate(self) -> None:
        return None


class TestJoinPath:
    def test_joins_prefix_and_path(self) -> None:
        assert join_path("/users", "/:id") == "/users/:id"

    def test_root_prefix(self) -> None:
        assert join_path("/", "/about") == "/about"

    def test_default_action_path(self) -> None:
        assert join_path("/users/", "/") == "/users"


class TestRegistryBuilder:
    def test_action_defaults(self) -> None:
        builder = RegistryBuilder()
        builder.controller(UserController, "/users").action("save")
        (route,) = builder.routes
        assert route.path == "/users/save"
        assert route.methods == HTTP_METHODS

    def test_shields_and_guards_attached(self) -> None:
        builder = RegistryBuilder()
        builder.controller(UserController, "/users", shields=[AuthShield]).action(
            "get_user", "/:id", methods=["GET"], guards=[IdGuard]
        )
        registry = builder.build()
        match = registry.router.match("/users/5", "GET")
        assert match is not None
        assert match.shields == (AuthShield,)
        assert match.guards == (IdGuard,)
        assert match.params["id"] == "5"

    def test_default_action(self) -> None:
        builder = RegistryBuilder()
        builder.controller(UserController, "/users").default_action("index", methods=["GET"])
        registry = builder.build()
        match = registry.router.match("/users", "GET")
        assert match is not None
        assert match.action == "index"

    def test_walls_kept_in_order(self) -> None:
        async def other_wall(ctx):
            return None

        builder = RegistryBuilder()
        builder.wall(LogWall)
        builder.wall(other_wall)
        assert builder.build().walls == (LogWall, other_wall)

    def test_wall_tier_mismatch_rejected(self) -> None:
        builder = RegistryBuilder()
        with pytest.raises(ConfigurationError, match="Guard"):
            builder.wall(IdGuard)

    def test_shield_tier_mismatch_rejected(self) -> None:
        builder = RegistryBuilder()
        with pytest.raises(ConfigurationError):
            builder.controller(UserController, "/users", shields=[LogWall])

    def test_guard_tier_mismatch_rejected(self) -> None:
        routes = RegistryBuilder().controller(UserController, "/users")
        with pytest.raises(ConfigurationError):
            routes.action("index", guards=[AuthShield])

    def test_missing_action_rejected(self) -> None:
        routes = RegistryBuilder().controller(UserController, "/users")
        with pytest.raises(ConfigurationError, match="no action method"):
            routes.action("nope")

    def test_unknown_method_rejected(self) -> None:
        routes = RegistryBuilder().controller(UserController, "/users")
        with pytest.raises(ConfigurationError, match="Unknown HTTP method"):
            routes.action("index", methods=["FETCH"])

    def test_registration_after_build_rejected(self) -> None:
        builder = RegistryBuilder()
        builder.build()
        with pytest.raises(RuntimeError):
            builder.wall(LogWall)
