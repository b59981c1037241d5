"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can put on the wire, with their reason phrases.

=============================================================================
WHERE EACH CODE COMES FROM
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  200   │ GET /, GET /users, POST /users (json contract)            │
    │  201   │ POST /users (form contract)                               │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  400   │ Malformed request line, unknown method, ".." in the path  │
    │  404   │ Any method/path pair the router does not know             │
    │  408   │ Client connected but never finished sending a request     │
    │  413   │ Request larger than max_request_size                      │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  500   │ index.html unreadable, or a handler raised                │
    │  503   │ Worker queue full, connection rejected                    │
    │  505   │ Anything other than HTTP/1.0 or HTTP/1.1                  │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so a member compares equal to its number:

        >>> HTTPStatus.CREATED == 201
        True
        >>> HTTPStatus.CREATED.phrase
        'Created'
    """

    # =========================================================================
    # 2xx SUCCESS
    # =========================================================================
    OK = 200
    CREATED = 201

    # =========================================================================
    # 4xx CLIENT ERRORS
    # =========================================================================
    BAD_REQUEST = 400
    NOT_FOUND = 404
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # =========================================================================
    # 5xx SERVER ERRORS
    # =========================================================================
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 201 Created
                     ─── ───────
                      │     └── phrase
                      └──────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_server_error(self) -> bool:
        """5xx. Access log lines for these go out at WARNING."""
        return 500 <= self < 600


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
