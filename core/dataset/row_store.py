# ==============================
# Row Store
# ==============================
"""
Holds the currently published snapshot.

A snapshot reference is swapped as a whole under a lock. Readers take the
reference once and keep using it, so a concurrent swap never shows them a
half-loaded dataset. No query logic here.
"""

from __future__ import annotations

import threading
from typing import Optional

from core.contracts.dataset_schema import Snapshot


class RowStore:
    def __init__(self, snapshot: Optional[Snapshot] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = snapshot
        self._version = 0 if snapshot is None else 1

    def current(self) -> Optional[Snapshot]:
        with self._lock:
            return self._snapshot

    def replace(self, snapshot: Snapshot) -> Optional[Snapshot]:
        """Publish `snapshot` and return the one it supersedes."""
        if not isinstance(snapshot, Snapshot):
            raise TypeError(f"expected Snapshot, got {type(snapshot).__name__}")
        with self._lock:
            previous = self._snapshot
            self._snapshot = snapshot
            self._version += 1
            return previous

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def is_loaded(self) -> bool:
        return self.current() is not None
