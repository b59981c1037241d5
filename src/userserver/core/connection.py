"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket and hands out one complete request at a
time.

=============================================================================
FRAMING A REQUEST OUT OF A BYTE STREAM
=============================================================================

TCP delivers bytes, not messages. A single POST /users can arrive split
over several recv() calls, and with pipelining one recv() can hold the end
of one request and the start of the next. The connection keeps a buffer
and decides where each request ends:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  1. recv() until the buffer holds \r\n\r\n                          │
    │                                                                     │
    │  2. Look at the headers:                                            │
    │       Transfer-Encoding: chunked                                    │
    │           recv() until the zero-size chunk and its trailer arrive   │
    │       Content-Length: N                                             │
    │           recv() until N body bytes are buffered                    │
    │       neither                                                       │
    │           no body                                                   │
    │                                                                     │
    │     Expect: 100-continue with no body yet sent                      │
    │           answer "HTTP/1.1 100 Continue" before reading the body    │
    │                                                                     │
    │  3. Cut the request off the front of the buffer.                    │
    │     Whatever is left is the start of the next pipelined request.    │
    └─────────────────────────────────────────────────────────────────────┘

Every recv() is checked against max_request_size; a larger request
raises RequestTooLargeError.

=============================================================================
TIMEOUTS
=============================================================================

    first request on the connection     timeout             (30 s default)
    every request after that            keep_alive_timeout  (5 s default)

A client that connects and never completes a first request gets a
TimeoutError, which the server answers with 408. Silence after a
keep-alive response is normal and just ends the connection.

=============================================================================
CONNECTION STATES
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──► READING ...
                │                          │            │
                └──────────────────────────┴────────────┴──► CLOSING ──► CLOSED

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple
import uuid

from ..http.request import decode_chunked


logger = logging.getLogger(__name__)

CONTINUE_RESPONSE = b"HTTP/1.1 100 Continue\r\n\r\n"


class RequestTooLargeError(Exception):
    """The buffered request grew past max_request_size."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Request too large: {size} bytes (limit {limit})")
        self.size = size
        self.limit = limit


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port).
        id: Short random id used to tag log lines for this connection.
        state: Current ConnectionState.
        requests_handled: Complete requests read so far.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    @property
    def idle_time(self) -> float:
        return time.time() - self.last_activity

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request from the socket.

        Returns:
            The request bytes, headers and body, with any chunked framing
            still in place. None if the client closed the connection, or
            went quiet between keep-alive requests.

        Raises:
            TimeoutError: The first request did not arrive in time.
            RequestTooLargeError: The request exceeds max_request_size.
            HTTPParseError: A chunk size line is malformed.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                if not self._fill():
                    return None

            header_end = self._buffer.find(b"\r\n\r\n")
            header_section = self._buffer[:header_end]
            body_start = header_end + 4

            if len(self._buffer) == body_start and self._expects_continue(header_section):
                self._send_continue()

            if self._is_chunked(header_section):
                request_end = self._read_chunked_body(body_start)
            else:
                content_length = self._parse_content_length(header_section)
                while len(self._buffer) - body_start < content_length:
                    if not self._fill():
                        break
                request_end = body_start + content_length

            if request_end is None:
                # Client hung up in the middle of a chunked body
                return None

            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.state != ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

    def _read_chunked_body(self, body_start: int) -> Optional[int]:
        """
        recv() until the chunked body starting at body_start is complete.

        Returns the buffer offset just past the body, or None if the
        client closed the connection first.
        """
        while True:
            decoded = decode_chunked(self._buffer[body_start:])
            if decoded is not None:
                return body_start + decoded[1]
            if not self._fill():
                return None

    def _fill(self) -> bool:
        """Append one recv() to the buffer. False once the peer has closed."""
        chunk = self._recv()
        if not chunk:
            return False

        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLargeError(len(self._buffer), self.max_request_size)
        return True

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _header_value(headers: bytes, name: str) -> Optional[str]:
        """
        Value of the first header called name, matched case-insensitively.

        This runs before the parser sees the request, so it only scans
        the raw lines.
        """
        prefix = name.lower() + ":"
        for line in headers.decode("utf-8", errors="replace").split("\r\n")[1:]:
            if line.lower().startswith(prefix):
                return line.split(":", 1)[1].strip()
        return None

    def _is_chunked(self, headers: bytes) -> bool:
        value = self._header_value(headers, "transfer-encoding")
        return value is not None and "chunked" in value.lower()

    def _expects_continue(self, headers: bytes) -> bool:
        """Expect: 100-continue on a request that announces a body."""
        value = self._header_value(headers, "expect")
        if value is None or value.lower() != "100-continue":
            return False
        return self._is_chunked(headers) or self._parse_content_length(headers) > 0

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Content-Length from the raw headers, 0 if absent or unreadable.

        A bad value is left for RequestParser to reject with 400.
        """
        value = self._header_value(headers, "content-length")
        if value is None:
            return 0
        try:
            return max(int(value), 0)
        except ValueError:
            return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def _send_continue(self):
        """Interim 100 response, so the client goes on to send its body."""
        try:
            self.socket.sendall(CONTINUE_RESPONSE)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")

    def send_response(self, data: bytes) -> bool:
        """
        sendall() the response.

        Returns:
            True on success. False if the client has gone away, in which
            case the failure is logged and the caller should close.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection.

        Sends FIN with shutdown(SHUT_WR), drains whatever the client still
        has in flight for up to half a second, then closes the socket.
        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


__all__ = [
    "Connection",
    "ConnectionState",
    "RequestTooLargeError",
]
