# benor/transport/base.py
"""
Transport Adapter interface - outbound vote delivery for one node

Inbound votes never pass through the adapter: the control surface (or the
in-memory network) hands them straight to ConsensusEngine.deliver().
"""

import logging
from abc import ABC, abstractmethod


class Transport(ABC):
    """Best-effort, unordered, unacknowledged delivery of votes to peers"""

    def __init__(self, node_id: int):
        self.node_id = node_id
        self.logger = logging.getLogger(f"benor.transport.node{node_id}")

    @abstractmethod
    async def send(self, peer_id: int, round: int, value: int) -> None:
        """
        Deliver one vote to a peer.

        Raises:
            TransportFailure: On any delivery failure
        """

    async def start(self):
        """Acquire network resources (optional)"""

    async def stop(self):
        """Release network resources (optional)"""

    def log_send(self, peer_id: int, round: int, value: int):
        self.logger.debug(f"{self.node_id} -> {peer_id}: round={round} value={value}")
