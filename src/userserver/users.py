"""
=============================================================================
USER STORE
=============================================================================

The in-memory list of user records behind GET /users and POST /users.

=============================================================================
BEHAVIOUR
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  start      [{"id": 1, "name": "Ahmet"}, {"id": 2, "name": "Ayşe"}] │
    │  create     appends {"id": len + 1, "name": name}                   │
    │  append     appends any record as it is (json contract)             │
    │  list       copy of every record, oldest first                      │
    └─────────────────────────────────────────────────────────────────────┘

Records are only ever appended. Nothing is removed, nothing is persisted,
and neither id nor name has to be unique: an appended {"id": 5} does not
stop a later create() from also handing out id 5 if the store length
says so.

=============================================================================
CONCURRENCY
=============================================================================

Worker threads call into the same store. One lock covers every method,
and create() computes the id and appends under that single acquisition,
so two concurrent creates can never be given the same id or lose a
record.

=============================================================================
"""

import copy
import threading
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    """A seed or form-created user record."""

    id: int
    name: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        # Key order is part of the JSON output: id first, then name
        return {"id": self.id, "name": self.name}


SEED_USERS = (
    User(1, "Ahmet"),
    User(2, "Ayşe"),
)


class UserStore:
    """
    Ordered, thread-safe, append-only collection of user records.

    Each instance starts with its own copy of the seeds:

        >>> store = UserStore()
        >>> len(store)
        2
        >>> store.create("Fatma")
        {'id': 3, 'name': 'Fatma'}

    Args:
        seeds: Initial records. Defaults to SEED_USERS. User instances
            are converted to dicts; anything else is stored as given.
    """

    def __init__(self, seeds: Optional[Iterable[Any]] = None):
        self._lock = threading.Lock()
        initial = SEED_USERS if seeds is None else seeds
        self._records: List[Any] = [
            seed.to_dict() if isinstance(seed, User) else copy.deepcopy(seed)
            for seed in initial
        ]

    def list(self) -> List[Any]:
        """
        Snapshot of all records in insertion order.

        The list is a deep copy, so callers cannot reach into the store.
        """
        with self._lock:
            return copy.deepcopy(self._records)

    def append(self, record: Any) -> Any:
        """
        Append record verbatim and return it.

        The store keeps its own copy; later changes to the caller's object
        do not show up in list().
        """
        with self._lock:
            self._records.append(copy.deepcopy(record))
        return record

    def create(self, name: Optional[str]) -> Dict[str, Any]:
        """
        Build {"id": len + 1, "name": name}, append it and return it.

        name may be None, which serializes as JSON null.
        """
        with self._lock:
            record = User(len(self._records) + 1, name).to_dict()
            self._records.append(record)
            size = len(self._records)

        logger.debug(f"Created user {record['id']}, store now holds {size} records")
        return dict(record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __repr__(self) -> str:
        return f"UserStore(records={len(self)})"
