"""
=============================================================================
MIDDLEWARE INTERFACE
=============================================================================

Middleware wraps the router so cross-cutting work runs around every
request without the users handlers knowing about it.

    ┌─────────────────────────────────────────────────────────────────┐
    │  LoggingMiddleware                                              │
    │    before: start timer, pick X-Request-ID                       │
    │  ┌───────────────────────────────────────────────────────────┐  │
    │  │  router.handle(request)                                   │  │
    │  │    GET / · GET /users · POST /users · 404                 │  │
    │  └───────────────────────────────────────────────────────────┘  │
    │    after: set X-Request-ID, write access log line               │
    └─────────────────────────────────────────────────────────────────┘

A middleware is any object with

    __call__(self, request, next) -> HTTPResponse

that calls next(request) to continue, or returns its own response to stop
the chain there.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """Base class for middleware. Subclasses implement __call__."""

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process one request.

        Args:
            request: The parsed request.
            next: The rest of the chain. Call it to reach the handler.

        Returns:
            The response, from next() or produced here.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered middleware around a final handler.

    The first middleware added is the outermost: it sees the request first
    and the response last.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

        Wrapping runs back to front, so [A, B] around h becomes A(B(h)).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)


class FunctionMiddleware(Middleware):
    """
    A plain (request, next) function used as middleware.

        @function_middleware
        def no_store(request, next):
            response = next(request)
            response.set_header("Cache-Control", "no-store")
            return response

        pipeline.add(no_store)
    """

    def __init__(
        self,
        func: Callable[[HTTPRequest, NextHandler], HTTPResponse],
        name: Optional[str] = None
    ):
        self._func = func
        self._name = name or func.__name__

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        return self._func(request, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(
    func: Callable[[HTTPRequest, NextHandler], HTTPResponse]
) -> FunctionMiddleware:
    return FunctionMiddleware(func)
