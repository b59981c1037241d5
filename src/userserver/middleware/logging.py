"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One log line per request on the "userserver.access" logger, and an
X-Request-ID header on every response.

=============================================================================
OUTPUT FORMATS
=============================================================================

text (Apache style, the default):

    127.0.0.1 - - [19/Oct/2026:12:00:00 +0000] "POST /users" 201 24 0.41ms

json (one object per line):

    {"request_id":"3f2a9c1e","method":"POST","path":"/users","query":"",
     "client_ip":"127.0.0.1","user_agent":"curl/8.0","status_code":201,
     "content_length":24,"duration_ms":0.41,"timestamp":"19/Oct/2026:..."}

Server errors (5xx) are logged at WARNING so they stand out from normal
traffic at INFO.

=============================================================================
REQUEST IDS
=============================================================================

If the client sends X-Request-ID it is reused, so a caller can match its
own logs to ours. Otherwise an 8-character id is generated.

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional, Iterable
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus


logger = logging.getLogger("userserver.access")


@dataclass
class RequestLog:
    """One access log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    def to_text(self) -> str:
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Access logging.

    Add it first so its timing covers everything else:

        pipeline.add(LoggingMiddleware(log_format="json"))

    Args:
        log_format: "text" or "json".
        include_request_id: Set X-Request-ID on responses.
        log_level: Level for non-5xx lines.
        skip_paths: Paths that are never logged.
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = request.get_header("x-request-id") or str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] {request.method} {request.path} failed "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=request.raw_query,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        level = logging.WARNING if HTTPStatus(response.status).is_server_error else self.log_level
        line = entry.to_json() if self.log_format == "json" else entry.to_text()
        logger.log(level, line)

        return response
