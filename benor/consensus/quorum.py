# benor/consensus/quorum.py
"""
Quorum Calculator - Ben-Or decision threshold

Formula:
- n = total nodes
- f = max faulty nodes assumed
- threshold = n - f (matching votes needed to decide)
- n > 2f (otherwise no value can ever be decided safely)

For n=4, f=1:
- threshold = 3
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

logger = logging.getLogger("benor.consensus.quorum")


@dataclass
class QuorumCalculator:
    """
    Decision rule for one round's tally.

    With n <= 2f the calculator never decides; every round falls back to the
    majority value or the coin flip.
    """

    total_nodes: int = 4
    max_faulty: int = 1

    def __post_init__(self):
        if self.total_nodes < 1:
            raise ValueError(f"Network needs at least one node, got {self.total_nodes}")
        if self.max_faulty < 0:
            raise ValueError(f"Faulty count cannot be negative, got {self.max_faulty}")

        self._threshold = self.total_nodes - self.max_faulty
        if not self.can_decide:
            logger.warning(
                f"n={self.total_nodes} <= 2f={2 * self.max_faulty}: "
                f"nodes will never decide"
            )

    @property
    def threshold(self) -> int:
        """Minimum matching votes needed to decide (n - f)"""
        return self._threshold

    @property
    def n(self) -> int:
        return self.total_nodes

    @property
    def f(self) -> int:
        return self.max_faulty

    @property
    def can_decide(self) -> bool:
        """Safe decision is only possible when n > 2f"""
        return self.total_nodes > 2 * self.max_faulty

    def decide(self, count0: int, count1: int) -> Optional[int]:
        """
        Value decided by this tally, or None.

        A value is decided when it reaches the threshold and strictly
        outnumbers the other value.
        """
        if not self.can_decide:
            return None
        if count0 >= self._threshold and count0 > count1:
            return 0
        if count1 >= self._threshold and count1 > count0:
            return 1
        return None

    @staticmethod
    def majority(count0: int, count1: int) -> Optional[int]:
        """Strict majority value, or None on a tie"""
        if count0 > count1:
            return 0
        if count1 > count0:
            return 1
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_nodes": self.total_nodes,
            "max_faulty": self.max_faulty,
            "threshold": self._threshold,
            "can_decide": self.can_decide,
            "formula": f"threshold = n - f = {self.total_nodes} - {self.max_faulty} = {self._threshold}",
        }
