"""
=============================================================================
USERSERVER - In-memory users HTTP server on raw sockets
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET  /        the bundled index.html, read from disk each time     │
    │  GET  /users   every user record as a JSON array                    │
    │  POST /users   append a record (form or json contract)              │
    │  anything else 404 Not Found                                        │
    └─────────────────────────────────────────────────────────────────────┘

Records live in memory for the life of the process and start as:

    [{"id":1,"name":"Ahmet"},{"id":2,"name":"Ayşe"}]

=============================================================================
PACKAGE LAYOUT
=============================================================================

    userserver/
    ├── core/          sockets, connections, thread pool
    ├── http/          request parsing, responses, routing, status codes
    ├── middleware/    pipeline and access logging
    ├── handlers/      index page and users handlers
    ├── users.py       UserStore
    ├── config.py      ServerConfig
    ├── server.py      HTTPServer
    ├── app.py         create_app()
    └── __main__.py    command line

=============================================================================
USAGE
=============================================================================

    from userserver import ServerConfig, create_app

    server = create_app(ServerConfig(port=8080, contract="json"))
    server.run()

or from a shell:

    python -m userserver --contract json

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer
from .users import UserStore, User
from .app import create_app

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "UserStore",
    "User",
    "create_app",
    "__version__",
]
