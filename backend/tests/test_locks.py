"""Keyed locks: per-key exclusion, entries dropped once nobody holds them."""
import threading

import pytest

from progression.utils.locks import KeyedLock


def test_entry_dropped_after_release():
    locks = KeyedLock()
    for key in range(100):
        with locks.hold(key):
            assert len(locks) == 1
    assert len(locks) == 0


def test_reentrant_hold_keeps_entry_until_outer_exit():
    locks = KeyedLock()
    with locks.hold(7):
        with locks.hold(7):
            pass
        assert len(locks) == 1
    assert len(locks) == 0


def test_entry_dropped_when_body_raises():
    locks = KeyedLock()
    with pytest.raises(RuntimeError):
        with locks.hold("league"):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_waiter_keeps_entry_alive():
    locks = KeyedLock()
    entered = threading.Event()
    order = []

    def second():
        with locks.hold(1):
            order.append("second")
        entered.set()

    with locks.hold(1):
        worker = threading.Thread(target=second)
        worker.start()
        assert not entered.wait(0.1)
        order.append("first")
    worker.join(timeout=5)

    assert order == ["first", "second"]
    assert len(locks) == 0
