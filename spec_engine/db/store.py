"""In-process store backing the repository modules."""

import threading
from functools import lru_cache
from typing import Any


class InMemoryStore:
    """Tables as dicts keyed by id; every access goes through `lock`."""

    def __init__(self):
        self.lock = threading.RLock()
        self.reset()

    def reset(self) -> None:
        """Drop all rows."""
        with self.lock:
            self.features: dict[str, Any] = {}
            self.chunks: dict[str, Any] = {}
            self.specs: dict[str, Any] = {}
            self.audit_log: list[Any] = []


@lru_cache(maxsize=1)
def get_store() -> InMemoryStore:
    """Get the process-wide store (cached singleton)."""
    return InMemoryStore()
