"""
=============================================================================
REQUEST HANDLERS
=============================================================================

    ┌────────────────────────────────────────────────────────────────┐
    │  index.py   IndexPageHandler   GET /                           │
    │  users.py   UsersHandler       GET /users, POST /users         │
    └────────────────────────────────────────────────────────────────┘

Handlers are plain callables, request in and response out. They hold
their dependencies (file path, store, contract) on the instance and are
registered as bound methods.

=============================================================================
"""

from .index import IndexPageHandler
from .users import UsersHandler

__all__ = [
    "IndexPageHandler",
    "UsersHandler",
]
