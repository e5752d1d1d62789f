# benor/transport/memory.py
"""
In-memory network for tests and simulations.
Simulates latency and message loss between engines living in one event loop.
"""

import asyncio
import logging
import random
from typing import Dict, Optional, Tuple, TYPE_CHECKING

from benor.errors import InvalidMessage, TransportFailure
from benor.transport.base import Transport

if TYPE_CHECKING:
    from benor.consensus.engine import ConsensusEngine

logger = logging.getLogger("benor.transport.memory")


class InMemoryNetwork:
    """
    Registry of engines by node id plus the delivery conditions between them.

    Latency is drawn uniformly from latency_range (seconds); each message is
    lost with probability drop_rate. Both draw from one seeded source.
    """

    def __init__(
        self,
        latency_range: Tuple[float, float] = (0.0, 0.0),
        drop_rate: float = 0.0,
        seed: Optional[int] = None
    ):
        low, high = latency_range
        if low < 0 or high < low:
            raise ValueError(f"Invalid latency range {latency_range}")
        if not 0.0 <= drop_rate <= 1.0:
            raise ValueError(f"drop_rate must be within [0, 1], got {drop_rate}")

        self.latency_range = latency_range
        self.drop_rate = drop_rate
        self._rng = random.Random(seed)
        self.engines: Dict[int, "ConsensusEngine"] = {}

        # Counters
        self.sent = 0
        self.delivered = 0
        self.dropped = 0
        self.rejected = 0

    def attach(self, engine: "ConsensusEngine") -> "InMemoryTransport":
        """Register an engine and wire it to an in-memory transport"""
        if engine.node_id in self.engines:
            raise ValueError(f"Node {engine.node_id} already attached")
        self.engines[engine.node_id] = engine
        transport = InMemoryTransport(self, engine.node_id)
        engine.set_transport(transport)
        return transport

    def detach(self, node_id: int):
        """Remove a node; later sends to it fail"""
        self.engines.pop(node_id, None)

    def _sample_latency(self) -> float:
        low, high = self.latency_range
        if high == 0:
            return 0.0
        return self._rng.uniform(low, high)

    async def deliver(self, sender_id: int, peer_id: int, round: int, value: int) -> None:
        """Carry one vote from sender to peer"""
        self.sent += 1

        if self.drop_rate and self._rng.random() < self.drop_rate:
            self.dropped += 1
            raise TransportFailure(peer_id, "message lost")

        latency = self._sample_latency()
        if latency:
            await asyncio.sleep(latency)

        target = self.engines.get(peer_id)
        if target is None:
            self.dropped += 1
            raise TransportFailure(peer_id, "unknown node")

        try:
            await target.deliver(round, value)
        except InvalidMessage as e:
            self.rejected += 1
            raise TransportFailure(peer_id, e.message, original_error=e)

        self.delivered += 1

    def get_stats(self) -> Dict[str, int]:
        return {
            "nodes": len(self.engines),
            "sent": self.sent,
            "delivered": self.delivered,
            "dropped": self.dropped,
            "rejected": self.rejected,
        }


class InMemoryTransport(Transport):
    """Transport handle of one node on an InMemoryNetwork"""

    def __init__(self, network: InMemoryNetwork, node_id: int):
        super().__init__(node_id)
        self.network = network

    async def send(self, peer_id: int, round: int, value: int) -> None:
        self.log_send(peer_id, round, value)
        await self.network.deliver(self.node_id, peer_id, round, value)
