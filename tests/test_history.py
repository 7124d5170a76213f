"""
History Buffer Tests

INVARIANTS:
===========
- No duplicate identifiers, regardless of repeat submissions
- Size never exceeds capacity; at capacity each qualifying insert evicts exactly one member
- Members ordered newest first by (created_at, id)
- Snapshots are independent copies
"""

import random

import pytest

from dvmbot.agent.history import HistoryBuffer
from dvmbot.errors import BufferInvariantViolation
from tests.conftest import make_event


def _assert_ordered(buffer: HistoryBuffer):
    keys = [(e.created_at, e.id) for e in buffer.events()]
    assert keys == sorted(keys, reverse=True)


class TestInsert:

    def test_insert_and_contains(self):
        buffer = HistoryBuffer(capacity=5)
        assert buffer.insert(make_event("a", 10)) is True
        assert buffer.contains("a")
        assert not buffer.contains("b")
        assert len(buffer) == 1

    def test_duplicate_is_noop(self):
        buffer = HistoryBuffer(capacity=5)
        event = make_event("a", 10)
        buffer.insert(event)
        before = buffer.snapshot()
        assert buffer.insert(event) is False
        assert buffer.snapshot() == before
        assert len(buffer) == 1

    def test_same_id_with_different_timestamp_is_still_duplicate(self):
        buffer = HistoryBuffer(capacity=5)
        buffer.insert(make_event("a", 10))
        buffer.insert(make_event("a", 99))
        assert buffer.snapshot() == ("a",)
        assert buffer.events()[0].created_at == 10

    def test_idempotent_state(self):
        once = HistoryBuffer(capacity=3)
        twice = HistoryBuffer(capacity=3)
        events = [make_event(f"id{i}", i) for i in range(5)]
        for e in events:
            once.insert(e)
            twice.insert(e)
            twice.insert(e)
        assert once.snapshot() == twice.snapshot()

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            HistoryBuffer(capacity=0)


class TestOrdering:

    def test_newest_first(self):
        buffer = HistoryBuffer(capacity=10)
        for ts, eid in [(20, "b"), (10, "a"), (30, "c")]:
            buffer.insert(make_event(eid, ts))
        assert buffer.snapshot() == ("c", "b", "a")

    def test_timestamp_tie_broken_by_id(self):
        buffer = HistoryBuffer(capacity=10)
        for eid in ["m", "z", "a"]:
            buffer.insert(make_event(eid, 50))
        assert buffer.snapshot() == ("z", "m", "a")

    def test_order_holds_for_random_sequences(self):
        rng = random.Random(7)
        buffer = HistoryBuffer(capacity=25)
        for _ in range(300):
            eid = f"{rng.randrange(80):04x}"
            buffer.insert(make_event(eid, rng.randrange(40)))
            assert len(buffer) <= 25
            assert len(set(buffer.snapshot())) == len(buffer)
            _assert_ordered(buffer)


class TestEviction:

    def test_capacity_two_keeps_two_newest(self):
        buffer = HistoryBuffer(capacity=2)
        buffer.insert(make_event("x", 10))
        buffer.insert(make_event("y", 20))
        buffer.insert(make_event("z", 30))
        assert buffer.snapshot() == ("z", "y")

    def test_evicts_exactly_one_per_insert_at_capacity(self):
        buffer = HistoryBuffer(capacity=3)
        for i in range(3):
            buffer.insert(make_event(f"e{i}", i))
        for i in range(3, 10):
            before = set(buffer.snapshot())
            assert buffer.insert(make_event(f"e{i}", i)) is True
            after = set(buffer.snapshot())
            assert len(before - after) == 1
            assert len(buffer) == 3

    def test_older_than_all_members_is_rejected_at_capacity(self):
        buffer = HistoryBuffer(capacity=2)
        buffer.insert(make_event("y", 20))
        buffer.insert(make_event("z", 30))
        assert buffer.insert(make_event("x", 10)) is False
        assert buffer.snapshot() == ("z", "y")
        assert not buffer.contains("x")

    def test_eviction_is_by_order_not_arrival(self):
        buffer = HistoryBuffer(capacity=2)
        buffer.insert(make_event("new", 100))
        buffer.insert(make_event("old", 1))
        buffer.insert(make_event("mid", 50))
        assert buffer.snapshot() == ("new", "mid")


class TestSnapshot:

    def test_snapshot_is_independent_copy(self):
        buffer = HistoryBuffer(capacity=5)
        buffer.insert(make_event("a", 1))
        snap = buffer.snapshot()
        buffer.insert(make_event("b", 2))
        assert snap == ("a",)
        assert buffer.snapshot() == ("b", "a")

    def test_empty_snapshot(self):
        assert HistoryBuffer().snapshot() == ()


class TestInvariantCheck:

    def test_corrupted_state_is_detected(self):
        buffer = HistoryBuffer(capacity=5)
        buffer.insert(make_event("a", 1))
        # Simulate a second writer bypassing insert()
        buffer._events.append(make_event("rogue", 0))
        with pytest.raises(BufferInvariantViolation):
            buffer.insert(make_event("b", 2))
