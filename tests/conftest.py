"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from userserver import HTTPServer, ServerConfig, create_app


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_form_request() -> bytes:
    """Sample form-encoded POST /users."""
    body = b"name=Fatma"
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def sample_json_request() -> bytes:
    """Sample JSON POST /users."""
    body = b'{"id":5,"name":"Zeynep"}'
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_config(port: int, **overrides) -> ServerConfig:
    """Small, local, quick-to-stop server config."""
    settings = dict(
        host="127.0.0.1",
        port=port,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )
    settings.update(overrides)
    return ServerConfig(**settings)


class TestServer:
    """Runs an HTTPServer on a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, raw: bytes) -> bytes:
        return send_raw(self.port, raw)

    def send(self, raw: bytes) -> "RawResponse":
        return RawResponse(self.request(raw))

    def get(self, path: str) -> "RawResponse":
        return self.send(
            f"GET {path} HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n".encode()
        )

    def post(self, path: str, body: bytes, content_type: str) -> "RawResponse":
        head = (
            f"POST {path} HTTP/1.1\r\n"
            f"Host: localhost\r\n"
            f"Content-Type: {content_type}\r\n"
            f"Content-Length: {len(body)}\r\n"
            f"Connection: close\r\n"
            f"\r\n"
        )
        return self.send(head.encode() + body)


class RawResponse:
    """Minimal parse of a response read off the wire."""

    def __init__(self, data: bytes):
        self.raw = data
        head, _, self.body = data.partition(b"\r\n\r\n")
        lines = head.decode("latin-1").split("\r\n")

        self.status_line = lines[0]
        self.status = int(lines[0].split(" ")[1])
        self.headers = {}
        for line in lines[1:]:
            name, _, value = line.partition(":")
            self.headers[name.strip().lower()] = value.strip()

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


def send_raw(port: int, raw: bytes, timeout: float = 5.0) -> bytes:
    """Send raw bytes and read until the server closes the connection."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(raw)
        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def _running_app(port: int, **overrides) -> TestServer:
    store = overrides.pop("store", None)
    server = create_app(make_config(port, **overrides), store=store)
    test_srv = TestServer(server)
    test_srv.start()
    return test_srv


@pytest.fixture
def form_server(free_port: int) -> Generator[TestServer, None, None]:
    """Users server with the form contract."""
    test_srv = _running_app(free_port, contract="form")
    yield test_srv
    test_srv.stop()


@pytest.fixture
def json_server(free_port: int) -> Generator[TestServer, None, None]:
    """Users server with the JSON passthrough contract."""
    test_srv = _running_app(free_port, contract="json")
    yield test_srv
    test_srv.stop()


@pytest.fixture
def app_factory(free_port: int) -> Generator:
    """Start users servers with custom settings; all are stopped afterwards."""
    started = []

    def factory(**overrides) -> TestServer:
        test_srv = _running_app(free_port, **overrides)
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()
