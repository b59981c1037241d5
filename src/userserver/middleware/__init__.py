"""
=============================================================================
MIDDLEWARE
=============================================================================

Request/response hooks that wrap the router.

    ┌──────────────────────────────────────────────────────────────────┐
    │  base.py      Middleware ABC, MiddlewarePipeline,                │
    │               FunctionMiddleware for plain functions             │
    │  logging.py   LoggingMiddleware: access log + X-Request-ID       │
    └──────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .base import (
    Middleware,
    MiddlewarePipeline,
    FunctionMiddleware,
    function_middleware,
    NextHandler,
)
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "FunctionMiddleware",
    "function_middleware",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
