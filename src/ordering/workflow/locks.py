"""Pessimistic per-key locks for stock and coupon counters and for orders.

Each stock ledger entry and each coupon gets its own ``threading.Lock``,
created on first use. Callers hold the locks of every counter a command
touches for the whole command, commit included, so a second writer only
reads the counter after the first one has committed.

Locks are always acquired in sorted key order. Two commands touching
overlapping sets of counters therefore cannot deadlock.
"""

import threading
from contextlib import contextmanager


class StockLocks:
    """Registry of per-key locks.

    Keys are tuples such as ``("stock", product_id, option_id)`` or
    ``("coupon", coupon_id)`` or ``("order", order_id)``.
    """

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._locks: dict[tuple, threading.Lock] = {}

    def _lock_for(self, key: tuple) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, keys):
        """Hold the locks of all ``keys`` for the duration of the block."""
        ordered = sorted(set(keys))
        acquired = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def clear(self):
        """Forget all locks. Only safe while no lock is held."""
        with self._registry_lock:
            self._locks.clear()


def coupon_key(coupon_id) -> tuple:
    return ("coupon", str(coupon_id))


def order_key(order_id) -> tuple:
    return ("order", str(order_id))


stock_locks = StockLocks()
