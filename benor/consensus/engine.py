# benor/consensus/engine.py
"""
Consensus Engine - Ben-Or randomized binary agreement for one node

Round loop (repeated until decided or killed):
1. Record own estimate for the current round
2. BROADCAST: send (round, estimate) to every other node, best-effort
3. SETTLE: wait a fixed interval for peer votes
4. TALLY: count 0s and 1s recorded for the round
5. DECIDE: a value with >= n - f votes that outnumbers the other is decided;
   otherwise adopt the majority value, or flip a coin on a tie
6. Advance the round counter and pause briefly

Faulty nodes never run the loop and report opaque state.
"""

import asyncio
import inspect
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable, Set

from benor.config import Settings, get_settings
from benor.errors import TransportFailure
from benor.middleware.correlation import bind_node_id, correlation_id_var
from benor.transport.base import Transport

from .quorum import QuorumCalculator
from .state import NodeState, VoteMessage
from .store import RoundMessageStore

logger = logging.getLogger("benor.consensus.engine")


@dataclass
class ConsensusConfig:
    """Configuration for one node's consensus engine"""
    node_id: int = 0
    total_nodes: int = 4                     # n = total nodes
    max_faulty: int = 1                      # f = assumed max faulty nodes
    initial_value: Optional[int] = 0
    is_faulty: bool = False
    settle_interval: float = 0.1             # Wait for peer votes (seconds)
    round_delay: float = 0.01                # Pause between rounds (seconds)
    max_retained_rounds: Optional[int] = 64  # None keeps every round

    def __post_init__(self):
        if not 0 <= self.node_id < self.total_nodes:
            raise ValueError(
                f"node_id must be within [0, {self.total_nodes}), got {self.node_id}"
            )
        if self.settle_interval < 0 or self.round_delay < 0:
            raise ValueError("Timing intervals cannot be negative")

    @classmethod
    def from_settings(
        cls,
        node_id: int,
        total_nodes: int,
        max_faulty: int,
        initial_value: Optional[int],
        is_faulty: bool = False,
        settings: Optional[Settings] = None
    ) -> "ConsensusConfig":
        """Build a node config with timing and limits taken from the environment"""
        settings = settings or get_settings()
        return cls(
            node_id=node_id,
            total_nodes=total_nodes,
            max_faulty=max_faulty,
            initial_value=initial_value,
            is_faulty=is_faulty,
            settle_interval=settings.SETTLE_INTERVAL,
            round_delay=settings.ROUND_DELAY,
            max_retained_rounds=settings.max_retained_rounds,
        )


class ConsensusEngine:
    """
    Drives one node through consensus rounds until it decides or is killed.

    All engine methods must be called from the node's event loop. Node state
    and the round store are only touched while holding the engine lock, so
    a vote delivered during a tally is neither lost nor double-counted.
    """

    def __init__(
        self,
        config: Optional[ConsensusConfig] = None,
        transport: Optional[Transport] = None,
        rng: Optional[random.Random] = None
    ):
        self.config = config or ConsensusConfig()
        self.transport = transport
        self._rng = rng or random.Random()

        self.quorum = QuorumCalculator(
            total_nodes=self.config.total_nodes,
            max_faulty=self.config.max_faulty
        )
        self.state = NodeState.initial(self.config.initial_value, self.config.is_faulty)
        self.store = RoundMessageStore(max_rounds=self.config.max_retained_rounds)

        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._started = False
        self._pending_sends: Set[asyncio.Task] = set()

        self.started_at: Optional[datetime] = None
        self.decided_at: Optional[datetime] = None

        # Callbacks
        self._round_callbacks: List[Callable] = []
        self._decision_callbacks: List[Callable] = []

        logger.info(
            f"Node {self.node_id} engine created: n={self.config.total_nodes}, "
            f"f={self.config.max_faulty}, threshold={self.quorum.threshold}, "
            f"faulty={self.is_faulty}, initial={self.state.estimate}"
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def node_id(self) -> int:
        return self.config.node_id

    @property
    def is_faulty(self) -> bool:
        return self.config.is_faulty

    @property
    def is_running(self) -> bool:
        """True while the round loop task is alive"""
        return self._task is not None and not self._task.done()

    @property
    def has_started(self) -> bool:
        """True once start() has launched the loop (never reset)"""
        return self._started

    def peers(self) -> List[int]:
        """Every other node id in the network"""
        return [i for i in range(self.config.total_nodes) if i != self.node_id]

    def set_transport(self, transport: Transport):
        self.transport = transport

    # =========================================================================
    # Control Operations
    # =========================================================================

    def status(self) -> str:
        """'faulty' for faulty nodes, 'live' otherwise"""
        return "faulty" if self.is_faulty else "live"

    def get_state(self) -> Dict[str, Any]:
        """Snapshot of node state (opaque for faulty nodes)"""
        return self.state.snapshot(is_faulty=self.is_faulty)

    def start(self):
        """
        Launch the round loop once.

        No-op for faulty nodes, killed nodes and nodes that already started
        (including nodes whose loop has finished by deciding).
        """
        if self.is_faulty:
            logger.debug(f"Node {self.node_id} is faulty, ignoring start")
            return
        if self._started or self.state.killed:
            logger.debug(
                f"Node {self.node_id} start ignored: started={self._started}, "
                f"killed={self.state.killed}"
            )
            return

        self._started = True
        self.started_at = datetime.utcnow()
        self._task = asyncio.create_task(self._run(), name=f"benor-node-{self.node_id}")
        logger.info(f"Node {self.node_id} consensus started with estimate {self.state.estimate}")

    def stop(self):
        """Set the kill flag; the loop exits at its next check point"""
        if self.is_faulty:
            logger.debug(f"Node {self.node_id} is faulty, ignoring stop")
            return
        if not self.state.killed:
            self.state.killed = True
            logger.info(f"Node {self.node_id} killed at round {self.state.round}")

    async def deliver(self, round: Any, value: Any) -> bool:
        """
        Record an inbound vote.

        Faulty nodes accept and discard anything. Other nodes validate the
        vote first, then record it, also after being killed.

        Returns:
            True if the vote was recorded

        Raises:
            InvalidMessage: If round is not a non-negative int or value is not 0/1
        """
        if self.is_faulty:
            return False

        vote = VoteMessage(round=round, value=value)

        async with self._lock:
            stored = self.store.record(vote.round, vote.value)

        if stored:
            logger.debug(f"Node {self.node_id} recorded vote {vote.value} for round {vote.round}")
        return stored

    async def wait_until_done(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the round loop to exit.

        Returns:
            True if the loop has finished (or never started), False on timeout
        """
        if self._task is None:
            return True
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def close(self):
        """Kill the node, cancel the loop and any in-flight sends"""
        self.stop()
        tasks = list(self._pending_sends)
        if self._task is not None and not self._task.done():
            tasks.append(self._task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # Round Loop
    # =========================================================================

    async def _run(self):
        bind_node_id(self.node_id)
        try:
            while self.state.should_continue:
                await self._run_round()
                await asyncio.sleep(self.config.round_delay)
        except asyncio.CancelledError:
            logger.info(f"Node {self.node_id} round loop cancelled at round {self.state.round}")
            raise

        logger.info(
            f"Node {self.node_id} round loop exited: decided={self.state.decided}, "
            f"estimate={self.state.estimate}, round={self.state.round}, "
            f"killed={self.state.killed}"
        )

    async def _run_round(self):
        """One broadcast-collect-decide iteration"""
        async with self._lock:
            current_round = self.state.round
            estimate = self.state.estimate
            self.store.ensure_round(current_round)
            self.store.record(current_round, estimate)

        correlation_id_var.set(f"n{self.node_id}-r{current_round}")
        self._broadcast(current_round, estimate)

        await asyncio.sleep(self.config.settle_interval)

        async with self._lock:
            count0, count1 = self.store.tally(current_round)
            decided_value = self.quorum.decide(count0, count1)

            if decided_value is not None:
                self.state.decide(decided_value)
                self.decided_at = datetime.utcnow()
            else:
                majority = self.quorum.majority(count0, count1)
                if majority is None:
                    majority = self._flip_coin()
                    logger.debug(f"Node {self.node_id} round {current_round} tie, coin -> {majority}")
                self.state.adopt(majority)

            if self.state.should_continue:
                self.state.advance_round()
                self.store.advance(self.state.round)

        logger.debug(
            f"Node {self.node_id} round {current_round}: count0={count0}, count1={count1}, "
            f"estimate={self.state.estimate}, decided={self.state.decided}"
        )

        await self._notify_round_complete(current_round, count0, count1)
        if decided_value is not None:
            logger.info(
                f"Node {self.node_id} DECIDED {decided_value} in round {current_round} "
                f"(count0={count0}, count1={count1}, threshold={self.quorum.threshold})"
            )
            await self._notify_decision(decided_value, current_round)

    def _flip_coin(self) -> int:
        """Unbiased single-bit draw from the injected random source"""
        return self._rng.getrandbits(1)

    def _broadcast(self, round: int, value: int):
        """Fire-and-forget a vote to every peer; nothing is awaited"""
        if self.transport is None:
            logger.debug(f"Node {self.node_id} has no transport, vote for round {round} stays local")
            return

        for peer_id in self.peers():
            task = asyncio.create_task(self._best_effort_send(peer_id, round, value))
            self._pending_sends.add(task)
            task.add_done_callback(self._pending_sends.discard)

    async def _best_effort_send(self, peer_id: int, round: int, value: int) -> None:
        """Send one vote; the outcome is deliberately discarded"""
        try:
            await self.transport.send(peer_id, round, value)
        except TransportFailure as e:
            logger.debug(f"Node {self.node_id} vote for round {round} not delivered: {e.message}")
        except Exception as e:
            logger.warning(f"Node {self.node_id} unexpected send error to node {peer_id}: {e!r}")

    # =========================================================================
    # Callbacks
    # =========================================================================

    def on_round_complete(self, callback: Callable):
        """Register callback(node_id, round, count0, count1, state) after each tally"""
        self._round_callbacks.append(callback)

    def on_decision(self, callback: Callable):
        """Register callback(node_id, value, round) for the decision"""
        self._decision_callbacks.append(callback)

    async def _notify_round_complete(self, round: int, count0: int, count1: int):
        snapshot = self.get_state()
        for callback in self._round_callbacks:
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(self.node_id, round, count0, count1, snapshot)
                else:
                    callback(self.node_id, round, count0, count1, snapshot)
            except Exception as e:
                logger.error(f"Round callback error: {e}")

    async def _notify_decision(self, value: int, round: int):
        for callback in self._decision_callbacks:
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(self.node_id, value, round)
                else:
                    callback(self.node_id, value, round)
            except Exception as e:
                logger.error(f"Decision callback error: {e}")

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Get comprehensive engine status"""
        return {
            "node_id": self.node_id,
            "status": self.status(),
            "state": self.get_state(),
            "running": self.is_running,
            "started": self._started,
            "quorum": self.quorum.to_dict(),
            "store": None if self.is_faulty else self.store.to_dict(),
            "pending_sends": len(self._pending_sends),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "timestamp": datetime.utcnow().isoformat(),
        }
