import threading
from contextlib import contextmanager


class KeyedLocks:
    """One mutex per key (seat, food item), created on first use.

    Locks are never discarded; the key space is bounded by configured seats
    and catalogue items.
    """

    def __init__(self, name: str):
        self.name = name
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, *keys: str):
        # sorted so two callers wanting the same keys cannot deadlock
        locks = [self._lock_for(k) for k in sorted(set(keys))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()


seat_locks = KeyedLocks("seat")
item_locks = KeyedLocks("food_item")


def seat_key(category: str, seat_name: str) -> str:
    return f"{category}:{seat_name}"
