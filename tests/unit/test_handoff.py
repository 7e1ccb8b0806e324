"""Unit tests for the bounded producer/consumer handoff."""

import threading
import time

import pytest

from staging_store.domain.services.handoff import BoundedHandoff, HandoffCancelled


def start(target, *args) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, daemon=True)
    thread.start()
    return thread


@pytest.mark.unit
class TestBoundedHandoff:
    """Test backpressure and cancellation."""

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            BoundedHandoff(capacity=0)

    def test_put_blocks_until_taken(self):
        handoff = BoundedHandoff(capacity=1)
        returned = threading.Event()

        def produce():
            handoff.put("unit")
            returned.set()

        thread = start(produce)
        assert not returned.wait(0.3)
        assert len(handoff) == 1

        assert handoff.get(timeout=1) == "unit"
        assert returned.wait(1)
        thread.join(1)

    def test_capacity_bounds_items_in_flight(self):
        handoff = BoundedHandoff(capacity=2)
        produced = []

        def produce():
            for i in range(5):
                handoff.put(i)
                produced.append(i)

        thread = start(produce)
        time.sleep(0.3)
        # One item returned without blocking, the second is held back
        assert produced == [0]
        assert len(handoff) == 2

        taken = [handoff.get(timeout=1) for _ in range(5)]
        thread.join(1)
        assert taken == [0, 1, 2, 3, 4]

    def test_preserves_order(self):
        handoff = BoundedHandoff(capacity=1)
        items = [bytes([i]) * 3 for i in range(10)]
        thread = start(lambda: [handoff.put(item) for item in items])

        assert [handoff.get(timeout=1) for _ in items] == items
        thread.join(1)

    def test_equal_items_are_distinct(self):
        handoff = BoundedHandoff(capacity=1)
        thread = start(lambda: [handoff.put(b"same") for _ in range(3)])

        assert [handoff.get(timeout=1) for _ in range(3)] == [b"same"] * 3
        thread.join(1)
        assert not thread.is_alive()

    def test_get_timeout(self):
        handoff = BoundedHandoff()
        with pytest.raises(TimeoutError):
            handoff.get(timeout=0.05)

    def test_cancel_wakes_consumer(self):
        handoff = BoundedHandoff()
        errors = []

        def consume():
            try:
                handoff.get()
            except HandoffCancelled as e:
                errors.append(e)

        thread = start(consume)
        time.sleep(0.1)
        handoff.cancel()
        thread.join(1)
        assert len(errors) == 1

    def test_cancel_releases_producer(self):
        handoff = BoundedHandoff(capacity=1)
        results = []
        thread = start(lambda: results.append(handoff.put("unit")))

        time.sleep(0.1)
        handoff.cancel()
        thread.join(1)
        assert results == [False]
        assert handoff.put("late") is False

    def test_item_taken_before_cancel_is_delivered(self):
        handoff = BoundedHandoff(capacity=1)
        thread = start(handoff.put, "unit")
        time.sleep(0.1)
        assert handoff.get(timeout=1) == "unit"
        handoff.cancel()
        thread.join(1)
        assert handoff.cancelled
