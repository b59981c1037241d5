"""
=============================================================================
INDEX PAGE HANDLER
=============================================================================

GET / returns the bytes of index.html.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  file readable    200  Content-Type: text/html   body = file bytes  │
    │  anything else    500  Content-Type: text/plain  body = "Internal   │
    │                                                   Server Error"     │
    └─────────────────────────────────────────────────────────────────────┘

The file is opened on every request. Editing it on disk changes the next
response without a restart; there is no templating and no caching.

By default the page is the index.html shipped inside the package. Point
ServerConfig.index_file somewhere else to serve a different one.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Union

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, html, internal_error


logger = logging.getLogger(__name__)


class IndexPageHandler:
    """
    Serves one HTML file.

    Usage:
        index = IndexPageHandler("/srv/site/index.html")
        router.add_route("/", index.handle, method="GET")
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        try:
            content = self.path.read_bytes()
        except OSError as e:
            logger.error(f"Cannot read index page {self.path}: {e}")
            return internal_error()

        return html(content)

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)
