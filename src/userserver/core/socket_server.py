"""
=============================================================================
SOCKET SERVER
=============================================================================

The TCP layer: bind, listen, accept, and pass every accepted socket on as
a Connection.

=============================================================================
LIFECYCLE
=============================================================================

    socket()  ──►  setsockopt()  ──►  bind()  ──►  listen()
                                                      │
                                       ready event ◄──┤
                                                      ▼
                         ┌──────────────────  accept() ◄───────────────┐
                         │                        │                    │
                   1 s timeout              new client socket          │
                   (check _running)               │                    │
                         │                  Connection(...)            │
                         │                        │                    │
                         │               connection_handler(conn) ─────┘
                         ▼
                  shutdown() called ──► close listening socket

accept() times out every second so shutdown() from another thread, or from
a signal handler, is noticed without having to close the socket under the
accepting thread.

=============================================================================
SOCKET OPTIONS
=============================================================================

    SO_REUSEADDR   restart on the same port while old sockets sit in
                   TIME_WAIT
    SO_REUSEPORT   several processes may share the port (not on Windows)
    TCP_NODELAY    small responses go out immediately instead of waiting
                   for Nagle's algorithm to batch them

=============================================================================
SIGNALS
=============================================================================

When run from the main thread, SIGINT (Ctrl+C) and SIGTERM (docker stop,
kill) trigger shutdown() and the original handlers are put back on exit.
Python only allows signal handlers in the main thread, so a server started
from any other thread, as the test suite does, skips this step.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)     # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None

        self._ready_event = threading.Event()
        self._shutdown_event = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        (host, port) the server listens on.

        Once bound this is the real address, so a config with port 0
        reports the port the OS picked.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except (AttributeError, OSError):
            pass  # Not available on this platform

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(1.0)
        return sock

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in the main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # RUNNING
    # =========================================================================

    def start(
        self,
        connection_handler: Callable[[Connection], None],
        on_ready: Optional[Callable[[Tuple[str, int]], None]] = None,
    ):
        """
        Bind, listen and accept until shutdown() is called.

        Args:
            connection_handler: Called on the accepting thread with every
                new Connection. It must return quickly; HTTPServer hands
                the connection to its thread pool.
            on_ready: Called once with the bound (host, port) after
                listen() and before the first accept().

        Raises:
            OSError: The address could not be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        host, port = self.address
        logger.info(f"Listening on {host}:{port}")

        try:
            if on_ready is not None:
                on_ready(self.address)
            self._ready_event.set()
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop the accept loop. Safe to call from any thread, more than once."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._ready_event.clear()
        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown() has been called. False on timeout."""
        return self._shutdown_event.wait(timeout)
