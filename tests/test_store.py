# tests/test_store.py
"""
Round Message Store Tests
Append-only per-round votes, tallying and bounded retention
"""

import pytest

from benor.consensus import RoundMessageStore


class TestRecordAndTally:
    """Tests for record() and tally()"""

    def test_unknown_round_tallies_zero(self):
        """An unknown round yields (0, 0)"""
        store = RoundMessageStore()
        assert store.tally(5) == (0, 0)
        assert 5 not in store

    def test_record_creates_round(self):
        """Recording into a new round creates its sequence"""
        store = RoundMessageStore()
        assert store.record(0, 1) is True

        assert 0 in store
        assert store.votes(0) == [1]
        assert store.tally(0) == (0, 1)

    def test_votes_keep_arrival_order(self):
        store = RoundMessageStore()
        for value in (1, 0, 0, 1, 1):
            store.record(3, value)

        assert store.votes(3) == [1, 0, 0, 1, 1]
        assert store.tally(3) == (2, 3)

    def test_no_deduplication(self):
        """A peer voting twice for one round counts twice"""
        store = RoundMessageStore()
        store.record(0, 1)
        store.record(0, 1)

        assert store.tally(0) == (0, 2)

    def test_rounds_are_independent(self):
        store = RoundMessageStore()
        store.record(0, 0)
        store.record(1, 1)
        store.record(1, 1)

        assert store.tally(0) == (1, 0)
        assert store.tally(1) == (0, 2)
        assert store.rounds() == [0, 1]

    def test_ensure_round_is_idempotent(self):
        store = RoundMessageStore()
        store.record(2, 0)
        store.ensure_round(2)
        store.ensure_round(4)

        assert store.votes(2) == [0]
        assert store.votes(4) == []
        assert len(store) == 2

    def test_votes_returns_copy(self):
        """Callers cannot mutate the store through votes()"""
        store = RoundMessageStore()
        store.record(0, 1)
        store.votes(0).append(0)

        assert store.tally(0) == (0, 1)


class TestRetention:
    """Tests for the bounded retention window"""

    def test_invalid_window_rejected(self):
        with pytest.raises(ValueError):
            RoundMessageStore(max_rounds=0)

    def test_unbounded_store_keeps_everything(self):
        store = RoundMessageStore(max_rounds=None)
        for r in range(100):
            store.record(r, r % 2)
            store.advance(r)

        assert len(store) == 100
        assert store.floor == 0

    def test_advance_discards_old_rounds(self):
        """Only the last max_rounds rounds survive"""
        store = RoundMessageStore(max_rounds=3)
        for r in range(6):
            store.record(r, 1)
            store.advance(r)

        assert store.rounds() == [3, 4, 5]
        assert store.floor == 3
        assert store.tally(0) == (0, 0)

    def test_late_vote_for_pruned_round_dropped(self):
        store = RoundMessageStore(max_rounds=2)
        store.record(0, 1)
        store.advance(5)

        assert store.record(1, 0) is False
        assert store.dropped == 1
        assert 1 not in store

    def test_future_rounds_within_window_kept(self):
        """Votes up to max_rounds - 1 ahead of the current round are accepted"""
        store = RoundMessageStore(max_rounds=3)
        store.advance(10)

        assert store.ceiling == 12
        assert store.record(12, 1) is True
        assert store.tally(12) == (0, 1)

    def test_votes_beyond_window_dropped(self):
        """A flood of rising rounds never grows the store past max_rounds"""
        store = RoundMessageStore(max_rounds=4)
        accepted = [r for r in range(1000) if store.record(r, 1)]

        assert accepted == [0, 1, 2, 3]
        assert len(store) == 4
        assert store.dropped == 996

    def test_window_follows_advance(self):
        store = RoundMessageStore(max_rounds=3)
        assert store.record(3, 0) is False

        store.advance(1)
        assert store.record(3, 0) is True
        assert store.record(4, 0) is False

    def test_full_store_evicts_oldest_past_round(self):
        store = RoundMessageStore(max_rounds=3)
        store.advance(5)
        for r in (3, 4, 5, 6):
            store.record(r, 1)

        assert store.rounds() == [4, 5, 6]
        assert store.floor == 4

        store.record(7, 0)
        assert store.rounds() == [5, 6, 7]
        assert store.record(4, 1) is False

    def test_current_round_never_evicted(self):
        """Only rounds behind the current one make room for new votes"""
        store = RoundMessageStore(max_rounds=2)
        store.advance(8)
        store.record(7, 0)
        store.ensure_round(8)
        store.record(9, 1)

        assert store.rounds() == [8, 9]
        assert store.record(10, 1) is False
        assert 8 in store

    def test_unbounded_store_has_no_ceiling(self):
        store = RoundMessageStore()
        assert store.ceiling is None
        assert store.record(10_000, 1) is True

    def test_floor_never_moves_back(self):
        store = RoundMessageStore()
        store.discard_before(4)
        assert store.discard_before(2) == 0
        assert store.floor == 4
