"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) pairs to handler functions.

=============================================================================
THE USERS SERVER'S ROUTE TABLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   GET  /users?x=1                                                   │
    │        │                                                            │
    │        ▼  query string dropped, trailing slash dropped              │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  GET  /         → IndexPageHandler                          │   │
    │   │  GET  /users    → UsersHandler.list_users    ← MATCH        │   │
    │   │  POST /users    → UsersHandler.create_user                  │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                            │
    │        ▼                                                            │
    │   list_users(request)                                               │
    │                                                                     │
    │   Anything else, including DELETE /users → 404 "Not Found"          │
    └─────────────────────────────────────────────────────────────────────┘

There is no 405. A path that exists under another method is still
"not found" for this one.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Optional, List

from .request import HTTPRequest
from .response import HTTPResponse, not_found


Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """A normalized path bound to a handler. method None matches any method."""

    path: str
    method: Optional[str]
    handler: Handler


def normalize_path(path: str) -> str:
    """
    Strip trailing slashes so "/users/" and "/users" route the same.

    The root path stays "/".
    """
    stripped = path.strip("/")
    return "/" + stripped if stripped else "/"


class Router:
    """
    Request router.

    Paths match exactly once normalized. Routes are tried in registration
    order and the first match wins. Handlers are registered with
    decorators:

        router = Router()

        @router.get("/users")
        def list_users(request):
            return json_response(store.list())

    or directly, which is how create_app wires bound methods:

        router.add_route("/users", users.create_user, method="POST")
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(self, path: str, handler: Handler, method: Optional[str] = None) -> Route:
        route = Route(
            path=normalize_path(path),
            method=method.upper() if method else None,
            handler=handler,
        )
        self._routes.append(route)
        return route

    def route(self, path: str, method: Optional[str] = None) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "GET")

    def post(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "POST")

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[Route]:
        """
        First route matching method and path, or None.

        path must not include the query string; the parser has already
        split it off into request.query_params.
        """
        path = normalize_path(path)
        method = method.upper()

        for route in self._routes:
            if route.method and route.method != method:
                continue
            if route.path == path:
                return route

        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request to its handler.

        Unmatched requests get 404 with a plain-text "Not Found" body.
        """
        route = self.match(request.method, request.path)

        if route:
            return route.handler(request)

        return not_found()

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def describe_routes(self) -> List[str]:
        """
        One "METHOD  path" line per route, for the startup log.

            GET      /
            GET      /users
            POST     /users
        """
        return [f"{route.method or 'ANY':8} {route.path}" for route in self._routes]
