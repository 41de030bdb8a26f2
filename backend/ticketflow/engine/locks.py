"""Per-ticket locks serialising mutating engine operations"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class TicketLockManager:
    """
    One lock per ticket id, created on demand

    Operations on the same ticket run one at a time; different tickets
    proceed in parallel. An entry lives only while some thread holds or
    waits on it, so the registry does not grow with every id ever seen.
    """

    def __init__(self):
        self._registry_lock = threading.Lock()
        # ticket_id -> [lock, holders + waiters]
        self._locks: Dict[str, List] = {}

    def _acquire_entry(self, ticket_id: str) -> threading.Lock:
        with self._registry_lock:
            entry = self._locks.get(ticket_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[ticket_id] = entry
            entry[1] += 1
            return entry[0]

    def _release_entry(self, ticket_id: str) -> None:
        with self._registry_lock:
            entry = self._locks[ticket_id]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[ticket_id]

    def active_count(self) -> int:
        """Number of tickets currently held or waited on"""
        with self._registry_lock:
            return len(self._locks)

    def is_locked(self, ticket_id: str) -> bool:
        with self._registry_lock:
            entry = self._locks.get(ticket_id)
            return entry is not None and entry[0].locked()

    @contextmanager
    def hold(self, ticket_id: str) -> Iterator[None]:
        lock = self._acquire_entry(ticket_id)
        try:
            with lock:
                yield
        finally:
            self._release_entry(ticket_id)
