# benor/consensus/state.py
"""
Node State and Vote Message
The four-field consensus status of one participant, and the immutable
round-tagged vote exchanged between participants.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, Mapping

from benor.errors import InvalidMessage

logger = logging.getLogger("benor.consensus.state")

# Binary consensus values
VALUES = (0, 1)


def is_binary_value(value: Any) -> bool:
    """True only for the ints 0 and 1 (bools and floats are rejected)"""
    return type(value) is int and value in VALUES


def is_round_number(round: Any) -> bool:
    """True only for non-negative ints (bools are rejected)"""
    return type(round) is int and round >= 0


@dataclass(frozen=True)
class VoteMessage:
    """A vote for one round, copied by value between nodes"""
    round: int
    value: int

    def __post_init__(self):
        if not is_round_number(self.round):
            raise InvalidMessage(
                f"Round must be a non-negative integer, got {self.round!r}",
                round=self.round, value=self.value
            )
        if not is_binary_value(self.value):
            raise InvalidMessage(
                f"Value must be 0 or 1, got {self.value!r}",
                round=self.round, value=self.value
            )

    @classmethod
    def from_dict(cls, payload: Any) -> "VoteMessage":
        """
        Parse the wire form {"round": int, "value": 0|1}.

        Raises:
            InvalidMessage: If the payload is not an object or a field is malformed
        """
        if not isinstance(payload, Mapping):
            raise InvalidMessage(f"Vote must be an object, got {type(payload).__name__}")
        return cls(round=payload.get("round"), value=payload.get("value"))

    def to_dict(self) -> Dict[str, Any]:
        return {"round": self.round, "value": self.value}


@dataclass
class NodeState:
    """
    Consensus status for one node.

    Non-faulty nodes start with an estimate, decided=False and round=0.
    Faulty nodes keep estimate, decided and round at None forever.
    """
    killed: bool = False
    estimate: Optional[int] = None
    decided: Optional[bool] = None
    round: Optional[int] = None

    @classmethod
    def initial(cls, initial_value: Optional[int], is_faulty: bool) -> "NodeState":
        """Create the startup state for a node"""
        if is_faulty:
            return cls(killed=False, estimate=None, decided=None, round=None)
        if not is_binary_value(initial_value):
            raise ValueError(f"Initial value must be 0 or 1, got {initial_value!r}")
        return cls(killed=False, estimate=initial_value, decided=False, round=0)

    @property
    def is_decided(self) -> bool:
        return self.decided is True

    @property
    def should_continue(self) -> bool:
        """Whether the round loop may run another iteration"""
        return not self.killed and self.decided is not True

    def decide(self, value: int):
        """Freeze the estimate; one-way transition"""
        if self.is_decided:
            logger.warning(f"Ignoring second decision {value}, already decided {self.estimate}")
            return
        self.estimate = value
        self.decided = True

    def adopt(self, value: int):
        """Carry a new estimate into the next round"""
        if self.is_decided:
            return
        self.estimate = value

    def advance_round(self):
        """Move to the next round; no-op once decided or killed"""
        if self.is_decided or self.killed or self.round is None:
            return
        self.round += 1

    def snapshot(self, is_faulty: bool = False) -> Dict[str, Any]:
        """
        Copy of the state for reporting.

        Faulty nodes report only the killed flag; the other fields are always
        None whatever the internal values are.
        """
        if is_faulty:
            return {
                "killed": self.killed,
                "estimate": None,
                "decided": None,
                "round": None,
            }
        return {
            "killed": self.killed,
            "estimate": self.estimate,
            "decided": self.decided,
            "round": self.round,
        }
