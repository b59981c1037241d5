"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking layer underneath the HTTP code.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SocketServer   (socket_server.py)                                  │
    │  binds the port, runs the accept loop, wraps each client socket     │
    └───────────────────────────────┬─────────────────────────────────────┘
                                    │ Connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  ThreadPool     (thread_pool.py)                                    │
    │  min_workers..max_workers threads draining a bounded task queue     │
    └───────────────────────────────┬─────────────────────────────────────┘
                                    │ one worker per connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  Connection     (connection.py)                                     │
    │  buffered reads of whole requests, keep-alive, pipelining, close    │
    └─────────────────────────────────────────────────────────────────────┘

None of these know anything about routes or users; HTTPServer in
server.py is what plugs them together.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLargeError
from .thread_pool import ThreadPool, Task, Worker, WorkerState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLargeError",
    "ThreadPool",
    "Task",
    "Worker",
    "WorkerState",
]
