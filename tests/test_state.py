# tests/test_state.py
"""
Node State and Vote Message Tests
"""

import pytest

from benor.consensus import NodeState, VoteMessage
from benor.errors import InvalidMessage


class TestVoteMessage:
    """Tests for vote validation"""

    def test_valid_vote(self):
        vote = VoteMessage(round=2, value=1)
        assert vote.to_dict() == {"round": 2, "value": 1}

    @pytest.mark.parametrize("round,value", [
        (-1, 0),
        (2, 5),
        (1.0, 1),
        ("1", 1),
        (None, 0),
        (True, 1),
        (0, True),
        (0, 1.0),
        (0, "0"),
        (0, None),
    ])
    def test_malformed_votes_rejected(self, round, value):
        with pytest.raises(InvalidMessage) as exc_info:
            VoteMessage(round=round, value=value)
        assert exc_info.value.error_code == "INVALID_MESSAGE"

    def test_from_dict(self):
        vote = VoteMessage.from_dict({"round": 0, "value": 0})
        assert vote == VoteMessage(0, 0)

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(InvalidMessage):
            VoteMessage.from_dict([0, 1])

    def test_from_dict_rejects_missing_fields(self):
        with pytest.raises(InvalidMessage):
            VoteMessage.from_dict({"round": 0})

    def test_vote_is_immutable(self):
        vote = VoteMessage(round=0, value=1)
        with pytest.raises(AttributeError):
            vote.value = 0


class TestNodeState:
    """Tests for node state transitions"""

    def test_initial_state(self):
        state = NodeState.initial(1, is_faulty=False)
        assert state.snapshot() == {"killed": False, "estimate": 1, "decided": False, "round": 0}

    def test_faulty_initial_state(self):
        state = NodeState.initial(1, is_faulty=True)
        assert state.estimate is None
        assert state.decided is None
        assert state.round is None

    def test_initial_value_must_be_binary(self):
        with pytest.raises(ValueError):
            NodeState.initial(2, is_faulty=False)

    def test_decide_is_one_way(self):
        state = NodeState.initial(0, is_faulty=False)
        state.decide(1)
        state.decide(0)
        state.adopt(0)
        state.advance_round()

        assert state.decided is True
        assert state.estimate == 1
        assert state.round == 0

    def test_advance_round_stops_when_killed(self):
        state = NodeState.initial(0, is_faulty=False)
        state.advance_round()
        state.killed = True
        state.advance_round()

        assert state.round == 1
        assert state.should_continue is False

    def test_faulty_snapshot_is_opaque(self):
        """Internal values never leak through a faulty snapshot"""
        state = NodeState(killed=True, estimate=1, decided=True, round=9)
        assert state.snapshot(is_faulty=True) == {
            "killed": True, "estimate": None, "decided": None, "round": None
        }
