"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the socket server, thread pool, parser, middleware and router into
one runnable server.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                            HTTPServer                               │
    │                                                                     │
    │   SocketServer ──accept──► ThreadPool ──worker──► _process_connection│
    │                                                        │            │
    │                              Connection.read_request() │            │
    │                              RequestParser.parse()     │            │
    │                                                        ▼            │
    │                       MiddlewarePipeline ──► Router ──► handler     │
    │                       (LoggingMiddleware)               │           │
    │                                                        ▼            │
    │                              HTTPResponse.to_bytes() ──► sendall()  │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ERRORS
=============================================================================

Failures before routing are answered here and close the connection:

    ┌──────────────────────────────┬─────────────────────────────┐
    │  HTTPParseError              │  its status_code (400, 505) │
    │  RequestTooLargeError        │  413                        │
    │  first request never arrived │  408                        │
    │  thread pool queue full      │  503                        │
    └──────────────────────────────┴─────────────────────────────┘

An exception escaping a handler is logged with its traceback and turned
into a 500 "Internal Server Error". The worker thread and the connection
loop carry on.

=============================================================================
"""

import logging
from typing import Optional, Callable, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool, RequestTooLargeError
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, Router,
    error_response, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Multi-threaded HTTP/1.1 server.

    Routes and middleware are registered before run():

        server = HTTPServer(ServerConfig(port=8080))
        server.use(LoggingMiddleware())

        @server.get("/users")
        def list_users(request):
            return json_response(store.list())

        server.run()                 # blocks until SIGINT/SIGTERM or stop()

    create_app() in app.py does this wiring for the users server.

    Raises:
        ValueError: From ServerConfig.validate() if config is invalid.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            max_queue_size=self.config.max_queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router()
        self._middleware = MiddlewarePipeline()

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    def get(self, path: str):
        return self._router.get(path)

    def post(self, path: str):
        return self._router.post(path)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Serve until stopped.

        Args:
            host: Override config.host.
            port: Override config.port.
        """
        if host:
            self.config.host = host
        if port:
            self.config.port = port

        self._setup_logging()
        self.serve_forever()

    def serve_forever(self):
        """
        Serve until stop(), without touching logging configuration.

        run() is for the command line; tests and embedders call this
        directly so their own logging setup stays in place.
        """
        self._running = True
        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()

        try:
            self._socket_server.start(self._handle_connection, on_ready=self._on_ready)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Ask the server to stop. Returns at once; run() does the cleanup."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _on_ready(self, address: Tuple[str, int]):
        _, port = address
        logger.info(f"Server is alive now: http://localhost:{port}/")
        logger.info(
            f"Workers: {self.config.min_workers}-{self.config.max_workers}, "
            f"contract: {self.config.contract}"
        )
        for line in self._router.describe_routes():
            logger.debug(f"Route: {line}")

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("userserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.keep_alive_timeout + 5.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Hand a new connection to the pool.

        The client gets a 503 and a closed socket if the queue is full, or if
        the connection waits in the queue longer than config.timeout.
        """
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            timeout=self.config.timeout,
            on_expired=self._expire_connection,
            block=False,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._reject_connection(conn)

    def _expire_connection(self, conn: Connection):
        logger.warning(f"[{conn.id}] Waited too long for a worker, rejecting connection")
        self._reject_connection(conn)

    def _reject_connection(self, conn: Connection):
        with conn:
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)

    def _process_connection(self, conn: Connection):
        """
        Request loop for one connection, run on a worker thread.

            read ──► parse ──► middleware + router ──► send
              ▲                                          │
              └──────────── keep-alive ◄─────────────────┘
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    logger.debug(f"[{conn.id}] No request before timeout")
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break
                except RequestTooLargeError as e:
                    logger.warning(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                    break
                except HTTPParseError as e:
                    logger.warning(f"[{conn.id}] Bad request: {e}")
                    self._send_error(conn, HTTPStatus(e.status_code))
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.warning(f"[{conn.id}] Bad request: {e}")
                    self._send_error(conn, HTTPStatus(e.status_code))
                    break

                conn.state = ConnectionState.PROCESSING

                try:
                    response = self._handler(request)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    response = internal_error()

                keep_alive = request.is_keep_alive and self.config.keep_alive
                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive",
                        f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.headers["Connection"] = "close"

                if not conn.send_response(response.to_bytes(self.config.server_name)):
                    break

                if not keep_alive:
                    break

                conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: HTTPStatus):
        """Plain-text error with Connection: close, sent outside the router."""
        response = error_response(status)
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))
