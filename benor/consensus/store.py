# benor/consensus/store.py
"""
Round Message Store - per-round vote buffer feeding the tally step

Votes accumulate append-only per round. Retention is bounded: at most
max_rounds rounds are held at any time.
- The engine calls advance() as it moves to a new round; rounds that fall
  behind the window are discarded and later votes for them are dropped.
- Votes for rounds more than max_rounds - 1 ahead of the current round are
  dropped, so a decided or killed node stays bounded while peers keep
  broadcasting higher rounds.
- When the store is full, the oldest round behind the current one is evicted.
"""

import logging
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger("benor.consensus.store")


class RoundMessageStore:
    """
    Mapping from round number to the votes received for that round.

    Not synchronized on its own; the consensus engine serializes access.
    """

    def __init__(self, max_rounds: Optional[int] = None):
        if max_rounds is not None and max_rounds < 1:
            raise ValueError(f"max_rounds must be >= 1 or None, got {max_rounds}")
        self.max_rounds = max_rounds
        self._votes: Dict[int, List[int]] = {}
        self._floor = 0
        self._current = 0
        self._dropped = 0

    def __len__(self) -> int:
        return len(self._votes)

    def __contains__(self, round: int) -> bool:
        return round in self._votes

    @property
    def floor(self) -> int:
        """Lowest round still accepted"""
        return self._floor

    @property
    def ceiling(self) -> Optional[int]:
        """Highest round accepted (None when unbounded)"""
        if self.max_rounds is None:
            return None
        return self._current + self.max_rounds - 1

    @property
    def dropped(self) -> int:
        """Votes discarded because their round was outside the window"""
        return self._dropped

    def ensure_round(self, round: int) -> List[int]:
        """Get the vote list for a round, creating it empty if absent"""
        votes = self._votes.setdefault(round, [])
        self._evict_overflow()
        return votes

    def record(self, round: int, value: int) -> bool:
        """
        Append a vote for a round. No deduplication.

        Returns:
            True if stored, False if the round is outside the retention window
        """
        ceiling = self.ceiling
        if round < self._floor or (ceiling is not None and round > ceiling):
            self._dropped += 1
            logger.debug(
                f"Dropping vote {value} for round {round} "
                f"(window {self._floor}..{ceiling})"
            )
            return False

        self._votes.setdefault(round, []).append(value)
        self._evict_overflow()
        if round not in self._votes:
            # A new round behind every retained one was evicted straight away
            self._dropped += 1
            return False
        return True

    def votes(self, round: int) -> List[int]:
        """Copy of the votes recorded for a round"""
        return list(self._votes.get(round, ()))

    def tally(self, round: int) -> Tuple[int, int]:
        """Count of 0s and 1s for a round; unknown round yields (0, 0)"""
        votes = self._votes.get(round)
        if not votes:
            return 0, 0
        count1 = sum(1 for v in votes if v == 1)
        return len(votes) - count1, count1

    def rounds(self) -> List[int]:
        """Retained round numbers in ascending order"""
        return sorted(self._votes)

    def discard_before(self, round: int) -> int:
        """
        Raise the retention floor and drop every older round.

        Returns:
            Number of rounds discarded
        """
        if round <= self._floor:
            return 0
        self._floor = round
        stale = [r for r in self._votes if r < round]
        for r in stale:
            del self._votes[r]
        if stale:
            logger.debug(f"Discarded {len(stale)} rounds below {round}")
        return len(stale)

    def advance(self, current_round: int) -> int:
        """Move the retention window to the current round"""
        self._current = max(self._current, current_round)
        if self.max_rounds is None:
            return 0
        return self.discard_before(self._current - self.max_rounds + 1)

    def _evict_overflow(self):
        """Evict the oldest rounds behind the current one while over capacity"""
        if self.max_rounds is None:
            return
        while len(self._votes) > self.max_rounds:
            oldest = min(self._votes)
            # Rounds at or ahead of the current one fit by the ceiling check
            if oldest >= self._current:
                break
            self.discard_before(oldest + 1)

    def to_dict(self) -> Dict[str, object]:
        return {
            "rounds": {r: self.tally(r) for r in self.rounds()},
            "floor": self._floor,
            "ceiling": self.ceiling,
            "max_rounds": self.max_rounds,
            "dropped": self._dropped,
        }
