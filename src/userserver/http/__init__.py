"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between the bytes a Connection reads and the handler that
answers them.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  request.py       bytes → HTTPRequest                               │
    │                   request line, headers, query, body, chunked       │
    │                   form and JSON body accessors                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │  router.py        (method, path) → handler, 404 otherwise           │
    ├─────────────────────────────────────────────────────────────────────┤
    │  response.py      HTTPResponse → bytes                              │
    │                   ResponseBuilder, compact JSON, plain-text errors  │
    ├─────────────────────────────────────────────────────────────────────┤
    │  status_codes.py  HTTPStatus enum with reason phrases               │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, decode_chunked
from .response import (
    HTTPResponse,
    ResponseBuilder,
    dump_json,
    json_response,
    created,
    html,
    error_response,
    not_found,
    internal_error,
)
from .router import Router, Route
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "decode_chunked",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "dump_json",
    "json_response",
    "created",
    "html",
    "error_response",
    "not_found",
    "internal_error",

    # Routing
    "Router",
    "Route",

    # Status codes
    "HTTPStatus",
]
