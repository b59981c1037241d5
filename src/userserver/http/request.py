"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the bytes a Connection has buffered into an HTTPRequest.

=============================================================================
WHAT ARRIVES ON THE WIRE
=============================================================================

A create request from the bundled index page looks like this:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  POST /users HTTP/1.1\r\n                        ◄── request line   │
    │  Host: localhost:8080\r\n                                           │
    │  Content-Type: application/x-www-form-urlencoded\r\n  ◄── headers   │
    │  Content-Length: 10\r\n                                             │
    │  \r\n                                            ◄── separator      │
    │  name=Fatma                                      ◄── body           │
    └─────────────────────────────────────────────────────────────────────┘

The body may instead be sent with Transfer-Encoding: chunked:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  5\r\n              ◄── chunk size in hex                           │
    │  name=\r\n          ◄── chunk data                                  │
    │  5\r\n                                                              │
    │  Fatma\r\n                                                          │
    │  0\r\n              ◄── last chunk                                  │
    │  \r\n               ◄── end of (empty) trailer section              │
    └─────────────────────────────────────────────────────────────────────┘

Handlers never see the chunk framing. The parser joins the chunks and the
request's body is "name=Fatma" either way.

=============================================================================
REJECTED REQUESTS
=============================================================================

    ┌──────────────────────────────────────────────┬────────┐
    │  Problem                                     │ Status │
    ├──────────────────────────────────────────────┼────────┤
    │  Larger than max_request_size                │  413   │
    │  No header terminator, bad request line      │  400   │
    │  Method outside VALID_METHODS                │  400   │
    │  ".." anywhere in the decoded path           │  400   │
    │  Bad Content-Length, short or broken body    │  400   │
    │  Version other than HTTP/1.0 or HTTP/1.1     │  505   │
    └──────────────────────────────────────────────┴────────┘

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple, Union
from urllib.parse import parse_qs, urlparse, unquote
import re
import json


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the status code the server should answer with, so the caller
    can build the error response without inspecting the message.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


# =============================================================================
# CHUNKED TRANSFER CODING
# =============================================================================

def decode_chunked(data: bytes) -> Optional[Tuple[bytes, int]]:
    """
    Decode a chunked body from the start of data.

    Args:
        data: Bytes immediately after the header separator.

    Returns:
        (body, consumed) once the last chunk and trailer section are
        present, where consumed is the number of framing bytes used up.
        None if more data is needed.

    Raises:
        HTTPParseError: If a chunk size line is not hexadecimal.
    """
    body = bytearray()
    pos = 0

    while True:
        line_end = data.find(b"\r\n", pos)
        if line_end == -1:
            return None

        # Chunk extensions (";name=value") are allowed and ignored
        size_field = data[pos:line_end].split(b";", 1)[0].strip()
        try:
            size = int(size_field, 16)
        except ValueError:
            raise HTTPParseError(f"Invalid chunk size: {size_field!r}")
        if size < 0:
            raise HTTPParseError(f"Invalid chunk size: {size_field!r}")

        pos = line_end + 2

        if size == 0:
            # Skip trailer fields up to the empty line
            while True:
                trailer_end = data.find(b"\r\n", pos)
                if trailer_end == -1:
                    return None
                if trailer_end == pos:
                    return bytes(body), trailer_end + 2
                pos = trailer_end + 2

        if len(data) < pos + size + 2:
            return None

        body += data[pos:pos + size]
        pos += size

        if data[pos:pos + 2] != b"\r\n":
            raise HTTPParseError("Chunk data not terminated by CRLF")
        pos += 2


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Header names are stored lowercase. query_params maps each name to the
    list of its values, the way urllib.parse.parse_qs returns them.

    The body accessors used by the users handlers:

        ┌──────────────┬──────────────────────────────────────────────────┐
        │ form_lists   │ body as urlencoded, {"name": ["Fatma"]}          │
        │ form         │ same, flattened: {"name": "Fatma"}               │
        │ json         │ body decoded as JSON, HTTPParseError if invalid  │
        └──────────────┴──────────────────────────────────────────────────┘
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    raw_query: str = ""
    body: bytes = b""

    client_address: Tuple[str, int] = ("", 0)
    raw: bytes = b""

    _body_json: Optional[Any] = field(default=None, repr=False)
    _form: Optional[Dict[str, List[str]]] = field(default=None, repr=False)

    # =========================================================================
    # HEADER PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """
        Media type without parameters.

        "application/json; charset=utf-8" → "application/json"
        """
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_json(self) -> bool:
        return self.content_type == "application/json"

    @property
    def is_form(self) -> bool:
        return self.content_type == "application/x-www-form-urlencoded"

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

            HTTP/1.1: open unless "Connection: close"
            HTTP/1.0: closed unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # BODY ACCESSORS
    # =========================================================================

    @property
    def text(self) -> str:
        """Body decoded as UTF-8. Undecodable bytes become U+FFFD."""
        return self.body.decode("utf-8", errors="replace")

    @property
    def form_lists(self) -> Dict[str, List[str]]:
        """
        Body parsed as application/x-www-form-urlencoded.

        Parsed the same way whatever Content-Type says. "+" decodes to a
        space and blank values are kept, so "name=" gives {"name": [""]}.
        """
        if self._form is None:
            self._form = parse_qs(self.text, keep_blank_values=True)
        return self._form

    @property
    def form(self) -> Dict[str, Union[str, List[str]]]:
        """
        Form fields flattened to one value per key.

        A key that appears once maps to its string; a repeated key keeps
        the list of all its values:

            "name=Fatma&tag=a&tag=b" → {"name": "Fatma", "tag": ["a", "b"]}
        """
        return {
            key: values[0] if len(values) == 1 else list(values)
            for key, values in self.form_lists.items()
        }

    def get_form(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a form field, or default when it is absent."""
        values = self.form_lists.get(name, [])
        return values[0] if values else default

    @property
    def json(self) -> Any:
        """
        Body decoded as JSON. Parsed once and cached.

        Raises:
            HTTPParseError: If the body is not valid UTF-8 JSON.
        """
        if self._body_json is None and self.body:
            try:
                self._body_json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._body_json

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSE STEPS
    ==========================================================================

        raw bytes
            │
            ├─ 1. size check ............................ 413
            ├─ 2. split at \r\n\r\n ..................... 400
            ├─ 3. request line: METHOD SP URI SP VERSION  400 / 505
            ├─ 4. header lines, names lowercased
            ├─ 5. body: chunked, or Content-Length bytes  400
            ▼
        HTTPRequest

    ==========================================================================
    """

    # RFC 7231 methods plus PATCH. The router decides which ones have a
    # handler; anything else never reaches it.
    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Raw request bytes as returned by Connection.read_request().
            client_address: Client's (ip, port), kept for logging.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        rest = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, raw_query, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        body = self._extract_body(headers, rest)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=parse_qs(raw_query, keep_blank_values=True),
            raw_query=raw_query,
            body=body,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> Tuple[str, str, str, str]:
        """
        Split "METHOD URI VERSION" and validate each part.

            "GET /users?page=1 HTTP/1.1"
                → ("GET", "/users", "page=1", "HTTP/1.1")
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}")

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"

        if ".." in path:
            raise HTTPParseError("Invalid path: contains ..")

        return method, path, parsed.query, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        """
        Parse "Name: value" lines into a dict keyed by lowercase name.

        A line starting with whitespace continues the previous header.
        A repeated header is joined with ", ". Lines without a colon are
        skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _extract_body(self, headers: Dict[str, str], rest: bytes) -> bytes:
        """
        Take the body out of the bytes following the headers.

        Chunked framing wins over Content-Length when both are present.
        Bytes past the end of the body belong to the next request and are
        dropped here; the Connection has already kept them.
        """
        if "chunked" in headers.get("transfer-encoding", "").lower():
            decoded = decode_chunked(rest)
            if decoded is None:
                raise HTTPParseError("Incomplete chunked body")
            return decoded[0]

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers.get('content-length')}"
            )
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")

        if len(rest) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(rest)}"
            )

        return rest[:content_length]
