"""
Consensus Module - Ben-Or randomized binary agreement
One engine per node: node state, per-round vote store and the round loop
(broadcast, settle, tally, decide or adopt majority / coin flip).
"""

from .engine import ConsensusEngine, ConsensusConfig
from .quorum import QuorumCalculator
from .state import NodeState, VoteMessage, VALUES
from .store import RoundMessageStore

__all__ = [
    # Engine
    "ConsensusEngine",
    "ConsensusConfig",
    # Decision rule
    "QuorumCalculator",
    # Data model
    "NodeState",
    "VoteMessage",
    "VALUES",
    "RoundMessageStore",
]
