"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds the responses the users server sends and serializes them to bytes.

=============================================================================
WHAT GOES OUT ON THE WIRE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  HTTP/1.1 201 Created\r\n                        ◄── status line    │
    │  Content-Type: application/json\r\n              ◄── set by handler │
    │  X-Request-ID: 3f2a9c1e\r\n                      ◄── middleware     │
    │  Connection: keep-alive\r\n                      ◄── server         │
    │  Content-Length: 24\r\n                    ─┐                       │
    │  Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n    ├─ added by to_bytes()  │
    │  Server: userserver/1.0\r\n                ─┘                       │
    │  \r\n                                                               │
    │  {"id":3,"name":"Fatma"}                         ◄── body           │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CONTENT TYPES
=============================================================================

Handlers set exactly one of three media types, without a charset
parameter:

    text/html          GET /
    application/json   GET /users, POST /users
    text/plain         404 and every error response

JSON is written compactly and non-ASCII characters go out as UTF-8:

    [{"id":1,"name":"Ahmet"},{"id":2,"name":"Ayşe"}]

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union
import json

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "userserver/1.0"

TEXT_HTML = "text/html"
TEXT_PLAIN = "text/plain"
APPLICATION_JSON = "application/json"


def dump_json(data: Any) -> bytes:
    """Serialize data as compact UTF-8 JSON."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


@dataclass
class HTTPResponse:
    """
    An HTTP response waiting to be sent.

    Handlers return one of these, middleware may add headers to it, and
    the server calls to_bytes() once it has decided on the Connection
    header.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {HTTPStatus(self.status).phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the response for socket.sendall().

        Content-Length, Date and Server are filled in unless the handler
        already set them. The headers dict itself is left untouched.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + b"\r\n" + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

    Every method except build() returns the builder:

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .json({"id": 3, "name": "Fatma"})
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    # =========================================================================
    # STATUS
    # =========================================================================

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the body verbatim. Strings are encoded as UTF-8."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = TEXT_PLAIN
        return self

    def html(self, html: Union[str, bytes]) -> "ResponseBuilder":
        """
        Set an HTML body.

        Bytes are sent as they are, so a page read from disk reaches the
        client byte for byte.
        """
        self.body(html)
        self._headers["Content-Type"] = TEXT_HTML
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        self._body = dump_json(data)
        self._headers["Content-Type"] = APPLICATION_JSON
        return self

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(dt: datetime) -> str:
    """
    Format a UTC datetime as an RFC 7231 HTTP-date.

        Mon, 19 Oct 2026 12:00:00 GMT

    Names are spelled out by hand because strftime("%a") follows the
    process locale.
    """
    return (
        f"{_DAYS[dt.weekday()]}, "
        f"{dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return json_response(store.list())
#     return created(record)
#     return not_found()
#
# =============================================================================

def json_response(data: Any, status: HTTPStatus = HTTPStatus.OK) -> HTTPResponse:
    """Any JSON value, including null and bare strings, as application/json."""
    return ResponseBuilder().status(status).json(data).build()


def created(data: Any) -> HTTPResponse:
    """201 Created with the new record as JSON."""
    return json_response(data, HTTPStatus.CREATED)


def html(content: Union[str, bytes]) -> HTTPResponse:
    return ResponseBuilder().status(HTTPStatus.OK).html(content).build()


def error_response(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """
    Plain-text error whose body defaults to the reason phrase.

        error_response(HTTPStatus.NOT_FOUND) → 404, "Not Found"
    """
    status = HTTPStatus(status)
    return (ResponseBuilder()
        .status(status)
        .text(message if message is not None else status.phrase)
        .build())


def not_found(message: str = "Not Found") -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, message)


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
