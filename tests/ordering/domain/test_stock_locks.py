"""Tests for the per-key lock registry."""

import threading

import pytest
from ordering.workflow.locks import StockLocks, coupon_key, order_key


class TestStockLocks:
    def test_same_key_same_lock(self):
        locks = StockLocks()
        assert locks._lock_for(("stock", "p", "-")) is locks._lock_for(("stock", "p", "-"))

    def test_locks_released_after_block(self):
        locks = StockLocks()
        key = ("stock", "p", "-")
        with locks.hold([key]):
            assert locks._lock_for(key).locked()
        assert not locks._lock_for(key).locked()

    def test_locks_released_on_error(self):
        locks = StockLocks()
        key = ("stock", "p", "-")
        with pytest.raises(RuntimeError):
            with locks.hold([key, coupon_key("c-1")]):
                raise RuntimeError("boom")
        assert not locks._lock_for(key).locked()
        assert not locks._lock_for(coupon_key("c-1")).locked()

    def test_duplicate_keys_acquired_once(self):
        locks = StockLocks()
        key = ("stock", "p", "-")
        with locks.hold([key, key]):
            pass

    def test_second_holder_waits(self):
        locks = StockLocks()
        key = ("stock", "p", "-")
        entered = threading.Event()

        def contender():
            with locks.hold([key]):
                entered.set()

        with locks.hold([key]):
            thread = threading.Thread(target=contender)
            thread.start()
            assert not entered.wait(timeout=0.1)

        thread.join(timeout=2)
        assert entered.is_set()

    def test_overlapping_key_sets_do_not_deadlock(self):
        locks = StockLocks()
        a, b = ("stock", "a", "-"), ("stock", "b", "-")
        done = []

        def worker(keys):
            for _ in range(200):
                with locks.hold(keys):
                    pass
            done.append(True)

        threads = [threading.Thread(target=worker, args=([a, b],)), threading.Thread(target=worker, args=([b, a],))]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)
        assert len(done) == 2

    def test_mixed_key_kinds_sort_without_error(self):
        locks = StockLocks()
        keys = [order_key("o-1"), ("stock", "p", "-"), coupon_key("c-1")]
        with locks.hold(keys):
            assert all(locks._lock_for(key).locked() for key in keys)
        assert order_key("o-1") == ("order", "o-1")
