"""
=============================================================================
APPLICATION FACTORY
=============================================================================

Builds the users server:

    ┌────────┬──────────┬──────────────────────────────────────────────────┐
    │ GET    │ /        │ IndexPageHandler(config.index_file)              │
    │ GET    │ /users   │ UsersHandler.list_users                          │
    │ POST   │ /users   │ UsersHandler.create_user  (config.contract)      │
    │ *      │ *        │ 404 "Not Found"                                  │
    └────────┴──────────┴──────────────────────────────────────────────────┘

Every request passes through LoggingMiddleware on the way in and out.

=============================================================================
"""

from typing import Optional

from .config import ServerConfig
from .handlers import IndexPageHandler, UsersHandler
from .middleware import LoggingMiddleware
from .server import HTTPServer
from .users import UserStore


def create_app(
    config: Optional[ServerConfig] = None,
    store: Optional[UserStore] = None,
) -> HTTPServer:
    """
    Create the users server, ready to run().

    Args:
        config: Server settings. Defaults to ServerConfig.from_env().
        store: Record store. Defaults to a fresh UserStore holding the
            two seed users. The store is available as server.store.

    Returns:
        Configured HTTPServer.
    """
    config = config or ServerConfig.from_env()
    store = store if store is not None else UserStore()

    server = HTTPServer(config)
    server.use(LoggingMiddleware(log_format=config.log_format))

    index = IndexPageHandler(config.index_file)
    users = UsersHandler(store, contract=config.contract)

    server.router.add_route("/", index.handle, method="GET")
    server.router.add_route("/users", users.list_users, method="GET")
    server.router.add_route("/users", users.create_user, method="POST")

    server.store = store
    return server
