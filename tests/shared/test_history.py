"""Tests for persona.shared.history.BoundedHistory."""

import threading

import pytest

from persona.shared.history import BoundedHistory


class TestBoundedHistory:
    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            BoundedHistory(0)

    def test_evicts_oldest_first(self):
        history = BoundedHistory(3, [1, 2, 3])
        evicted = history.append(4)
        assert evicted == 1
        assert history.snapshot() == (2, 3, 4)

    def test_append_below_capacity_evicts_nothing(self):
        history = BoundedHistory(3)
        assert history.append("a") is None
        assert len(history) == 1

    def test_snapshot_is_detached(self):
        history = BoundedHistory(5, [1, 2])
        snap = history.snapshot()
        history.append(3)
        assert snap == (1, 2)
        assert isinstance(snap, tuple)

    def test_last(self):
        history = BoundedHistory(10, range(6))
        assert history.last(3) == (3, 4, 5)
        assert history.last(20) == (0, 1, 2, 3, 4, 5)
        assert history.last(0) == ()

    def test_replace_keeps_newest(self):
        history = BoundedHistory(2)
        history.replace([1, 2, 3, 4])
        assert history.snapshot() == (3, 4)

    def test_clear(self):
        history = BoundedHistory(2, [1])
        history.clear()
        assert len(history) == 0

    def test_concurrent_appends_keep_capacity(self):
        history = BoundedHistory(288)

        def writer(offset):
            for i in range(500):
                history.append(offset + i)

        threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(history) == 288
        assert len(history.snapshot()) == 288
