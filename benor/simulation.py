# benor/simulation.py
"""
Simulation Harness - runs whole networks in memory

Used to check the protocol properties that only show over many runs:
agreement, validity and termination with probability 1. Every trial is
reproducible from its seed.
"""

import asyncio
import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Sequence, Tuple

from benor.consensus import ConsensusConfig, ConsensusEngine
from benor.transport.memory import InMemoryNetwork

logger = logging.getLogger("benor.simulation")


@dataclass
class SimulationResult:
    """Outcome of one network run"""
    seed: Optional[int]
    initial_values: List[int]
    faulty: List[bool]
    states: Dict[int, Dict[str, Any]]
    timed_out: bool = False
    network_stats: Dict[str, int] = field(default_factory=dict)

    def honest_ids(self) -> List[int]:
        return [i for i, is_faulty in enumerate(self.faulty) if not is_faulty]

    @property
    def decided_values(self) -> Dict[int, int]:
        return {
            i: self.states[i]["estimate"]
            for i in self.honest_ids()
            if self.states[i]["decided"] is True
        }

    @property
    def all_decided(self) -> bool:
        return len(self.decided_values) == len(self.honest_ids())

    @property
    def agreement(self) -> bool:
        """No two non-faulty nodes decided different values"""
        return len(set(self.decided_values.values())) <= 1

    @property
    def validity(self) -> bool:
        """With a unanimous non-faulty start, only that value may be decided"""
        starts = {self.initial_values[i] for i in self.honest_ids()}
        if len(starts) != 1:
            return True
        (value,) = starts
        return all(v == value for v in self.decided_values.values())

    @property
    def max_round(self) -> int:
        """Highest round reached by a non-faulty node"""
        rounds = [self.states[i]["round"] for i in self.honest_ids()]
        return max(rounds) if rounds else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "initial_values": self.initial_values,
            "faulty": self.faulty,
            "states": self.states,
            "timed_out": self.timed_out,
            "all_decided": self.all_decided,
            "agreement": self.agreement,
            "validity": self.validity,
            "max_round": self.max_round,
            "network": self.network_stats,
        }


@dataclass
class TrialSummary:
    """Aggregate of many simulation runs"""
    trials: int = 0
    fully_decided: int = 0
    timeouts: int = 0
    agreement_violations: int = 0
    validity_violations: int = 0
    decided_values: Counter = field(default_factory=Counter)
    rounds_needed: Counter = field(default_factory=Counter)

    def add(self, result: SimulationResult):
        self.trials += 1
        if result.all_decided:
            self.fully_decided += 1
            self.rounds_needed[result.max_round] += 1
        if result.timed_out:
            self.timeouts += 1
        if not result.agreement:
            self.agreement_violations += 1
        if not result.validity:
            self.validity_violations += 1
        for value in set(result.decided_values.values()):
            self.decided_values[value] += 1

    @property
    def termination_rate(self) -> float:
        return self.fully_decided / self.trials if self.trials else 0.0

    @property
    def mean_rounds(self) -> float:
        total = sum(self.rounds_needed.values())
        if not total:
            return 0.0
        return sum(r * count for r, count in self.rounds_needed.items()) / total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trials": self.trials,
            "fully_decided": self.fully_decided,
            "termination_rate": round(self.termination_rate, 4),
            "timeouts": self.timeouts,
            "agreement_violations": self.agreement_violations,
            "validity_violations": self.validity_violations,
            "decided_values": dict(self.decided_values),
            "rounds_needed": dict(sorted(self.rounds_needed.items())),
            "mean_rounds": round(self.mean_rounds, 3),
        }


def _node_seed(seed: Optional[int], node_id: int) -> Optional[int]:
    return None if seed is None else seed * 1009 + node_id


async def run_network(
    initial_values: Sequence[int],
    faulty: Optional[Sequence[bool]] = None,
    max_faulty: int = 0,
    seed: Optional[int] = None,
    settle_interval: float = 0.005,
    round_delay: float = 0.001,
    latency_range: Tuple[float, float] = (0.0, 0.0),
    drop_rate: float = 0.0,
    max_retained_rounds: Optional[int] = 64,
    timeout: float = 10.0
) -> SimulationResult:
    """
    Run one in-memory network until every non-faulty node decides.

    Nodes still running after the timeout are killed and the result is
    marked timed_out.
    """
    faulty = list(faulty) if faulty is not None else [False] * len(initial_values)
    if len(faulty) != len(initial_values):
        raise ValueError(
            f"Got {len(initial_values)} initial values but {len(faulty)} faulty flags"
        )

    network = InMemoryNetwork(latency_range=latency_range, drop_rate=drop_rate, seed=seed)
    engines: List[ConsensusEngine] = []
    for node_id, (value, is_faulty) in enumerate(zip(initial_values, faulty)):
        config = ConsensusConfig(
            node_id=node_id,
            total_nodes=len(initial_values),
            max_faulty=max_faulty,
            initial_value=None if is_faulty else value,
            is_faulty=is_faulty,
            settle_interval=settle_interval,
            round_delay=round_delay,
            max_retained_rounds=max_retained_rounds,
        )
        engine = ConsensusEngine(config=config, rng=random.Random(_node_seed(seed, node_id)))
        network.attach(engine)
        engines.append(engine)

    try:
        for engine in engines:
            engine.start()
        finished = await asyncio.gather(*[e.wait_until_done(timeout) for e in engines])
        states = {e.node_id: e.get_state() for e in engines}
    finally:
        for engine in engines:
            await engine.close()

    result = SimulationResult(
        seed=seed,
        initial_values=list(initial_values),
        faulty=faulty,
        states=states,
        timed_out=not all(finished),
        network_stats=network.get_stats(),
    )
    if result.timed_out:
        logger.warning(f"Simulation seed={seed} timed out after {timeout}s")
    return result


async def run_trials(
    trials: int,
    total_nodes: int = 4,
    max_faulty: int = 1,
    faulty_count: int = 0,
    initial_values: Optional[Sequence[int]] = None,
    seed: int = 0,
    **network_kwargs
) -> TrialSummary:
    """
    Run many independent networks and aggregate the outcomes.

    Faulty nodes are the last faulty_count node ids. When initial_values is
    None each trial draws fresh random initial values from its seed.
    """
    if faulty_count > total_nodes:
        raise ValueError(f"faulty_count {faulty_count} exceeds {total_nodes} nodes")
    if initial_values is not None and len(initial_values) != total_nodes:
        raise ValueError(f"Expected {total_nodes} initial values, got {len(initial_values)}")

    faulty = [i >= total_nodes - faulty_count for i in range(total_nodes)]
    summary = TrialSummary()

    for trial in range(trials):
        trial_seed = seed + trial
        if initial_values is None:
            rng = random.Random(trial_seed)
            values = [rng.getrandbits(1) for _ in range(total_nodes)]
        else:
            values = list(initial_values)

        result = await run_network(
            values,
            faulty=faulty,
            max_faulty=max_faulty,
            seed=trial_seed,
            **network_kwargs
        )
        summary.add(result)

    logger.info(f"Ran {trials} trials: {summary.to_dict()}")
    return summary
