"""
Unit tests for connection framing, driven over a socketpair.
"""

import socket
import threading

import pytest

from userserver.core import Connection, ConnectionState, RequestTooLargeError
from userserver.http.request import HTTPParseError, RequestParser


def parse(raw: bytes):
    return RequestParser().parse(raw)


@pytest.fixture
def pair():
    """(Connection, client socket) joined by a local socketpair."""
    server_sock, client_sock = socket.socketpair()
    conn = Connection(
        socket=server_sock,
        address=("127.0.0.1", 50000),
        buffer_size=16,
        timeout=1.0,
        keep_alive_timeout=0.2,
        max_request_size=1024,
    )
    yield conn, client_sock
    client_sock.close()
    conn.close()


class TestReadRequest:
    """Tests for Connection.read_request()."""

    def test_headers_only(self, pair):
        conn, client = pair
        client.sendall(b"GET /users HTTP/1.1\r\nHost: x\r\n\r\n")

        assert conn.read_request() == b"GET /users HTTP/1.1\r\nHost: x\r\n\r\n"
        assert conn.requests_handled == 1

    def test_content_length_body_in_pieces(self, pair):
        """Test that the body is read across several recv() calls."""
        conn, client = pair
        body = b"name=" + b"F" * 40
        client.sendall(
            b"POST /users HTTP/1.1\r\nContent-Length: "
            + str(len(body)).encode()
            + b"\r\n\r\n"
            + body
        )

        data = conn.read_request()

        assert parse(data).body == body

    def test_header_name_case(self, pair):
        conn, client = pair
        client.sendall(b"POST / HTTP/1.1\r\ncontent-LENGTH: 3\r\n\r\nabc")

        assert conn.read_request().endswith(b"\r\n\r\nabc")

    def test_chunked_body(self, pair):
        conn, client = pair
        client.sendall(
            b"POST /users HTTP/1.1\r\n"
            b"Transfer-Encoding: chunked\r\n"
            b"\r\n"
            b"5\r\nname=\r\n"
            b"5\r\nFatma\r\n"
            b"0\r\n\r\n"
        )

        data = conn.read_request()

        assert parse(data).body == b"name=Fatma"

    def test_bad_chunk_size(self, pair):
        conn, client = pair
        client.sendall(b"POST / HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\nxyz\r\n")

        with pytest.raises(HTTPParseError):
            conn.read_request()

    def test_pipelined_requests(self, pair):
        """Test that bytes after one request are kept for the next."""
        conn, client = pair
        client.sendall(
            b"POST /users HTTP/1.1\r\nContent-Length: 10\r\n\r\nname=Fatma"
            b"GET /users HTTP/1.1\r\n\r\n"
        )

        first = conn.read_request()
        second = conn.read_request()

        assert parse(first).body == b"name=Fatma"
        assert second == b"GET /users HTTP/1.1\r\n\r\n"
        assert conn.requests_handled == 2

    def test_client_closed(self, pair):
        conn, client = pair
        client.close()

        assert conn.read_request() is None

    def test_first_request_timeout(self, pair):
        conn, _ = pair

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_keep_alive_timeout_returns_none(self, pair):
        """Test that a quiet keep-alive connection ends without an error."""
        conn, client = pair
        client.sendall(b"GET / HTTP/1.1\r\n\r\n")
        assert conn.read_request() is not None

        assert conn.read_request() is None

    def test_too_large(self, pair):
        conn, client = pair
        client.sendall(b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 2000)

        with pytest.raises(RequestTooLargeError) as exc_info:
            conn.read_request()

        assert exc_info.value.limit == 1024


class TestSendAndClose:
    """Tests for sending and closing."""

    def test_send_response(self, pair):
        conn, client = pair

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n") is True
        assert client.recv(100) == b"HTTP/1.1 200 OK\r\n\r\n"
        assert conn.state == ConnectionState.WRITING

    def test_send_after_peer_closed(self, pair):
        conn, client = pair
        client.close()

        results = [conn.send_response(b"x" * 65536) for _ in range(5)]

        assert False in results

    def test_close_is_idempotent(self, pair):
        conn, client = pair
        client.close()

        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED

    def test_context_manager_closes(self):
        server_sock, client_sock = socket.socketpair()
        try:
            with Connection(socket=server_sock, address=("127.0.0.1", 1)) as conn:
                pass
            assert conn.state == ConnectionState.CLOSED
            assert client_sock.recv(10) == b""
        finally:
            client_sock.close()


class TestExpectContinue:
    """Tests for Expect: 100-continue."""

    def test_continue_sent_before_body(self, pair):
        conn, client = pair
        result = []
        reader = threading.Thread(target=lambda: result.append(conn.read_request()))

        client.sendall(
            b"POST /users HTTP/1.1\r\n"
            b"Expect: 100-continue\r\n"
            b"Content-Length: 10\r\n\r\n"
        )
        reader.start()
        client.settimeout(5.0)

        assert client.recv(100) == b"HTTP/1.1 100 Continue\r\n\r\n"
        client.sendall(b"name=Fatma")
        reader.join(timeout=5.0)

        assert parse(result[0]).body == b"name=Fatma"

    def test_no_continue_when_body_already_sent(self, pair):
        conn, client = pair
        client.sendall(
            b"POST /users HTTP/1.1\r\n"
            b"Expect: 100-continue\r\n"
            b"Content-Length: 10\r\n\r\nname=Fatma"
        )

        assert parse(conn.read_request()).body == b"name=Fatma"

        client.settimeout(0.1)
        with pytest.raises(socket.timeout):
            client.recv(100)

    def test_no_continue_without_body(self, pair):
        conn, client = pair
        client.sendall(b"GET /users HTTP/1.1\r\nExpect: 100-continue\r\n\r\n")

        assert conn.read_request() is not None

        client.settimeout(0.1)
        with pytest.raises(socket.timeout):
            client.recv(100)
