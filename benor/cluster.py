# benor/cluster.py
"""
Network Launcher - starts N HTTP nodes in the current event loop

Each node gets its own uvicorn server on BASE_NODE_PORT + node_id. The
launcher waits until every node answers /status (readiness), then drives the
control surface over HTTP with aiohttp: start consensus, poll states, stop.
"""

import asyncio
import logging
from typing import Optional, Dict, Any, List, Sequence

import aiohttp
import uvicorn

from benor.config import Settings, get_settings
from benor.node.server import NodeBundle, build_node

logger = logging.getLogger("benor.cluster")


class NetworkLauncher:
    """
    Orchestrates a local network of consensus nodes.

    Usage:
        async with NetworkLauncher([1, 1, 1, 0], faulty=[False, False, False, True], max_faulty=1) as net:
            await net.start_consensus()
            states = await net.wait_for_decision(timeout=10)
    """

    def __init__(
        self,
        initial_values: Sequence[int],
        faulty: Optional[Sequence[bool]] = None,
        max_faulty: int = 0,
        settings: Optional[Settings] = None,
        seed: Optional[int] = None,
        request_timeout: float = 5.0
    ):
        faulty = list(faulty) if faulty is not None else [False] * len(initial_values)
        if len(faulty) != len(initial_values):
            raise ValueError(
                f"Got {len(initial_values)} initial values but {len(faulty)} faulty flags"
            )
        if not initial_values:
            raise ValueError("Network needs at least one node")

        self.initial_values = list(initial_values)
        self.faulty = faulty
        self.max_faulty = max_faulty
        self.settings = settings or get_settings()
        self.seed = seed
        self.request_timeout = request_timeout

        self.nodes: List[NodeBundle] = []
        self._servers: List[uvicorn.Server] = []
        self._server_tasks: List[asyncio.Task] = []
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def total_nodes(self) -> int:
        return len(self.initial_values)

    def node_url(self, node_id: int) -> str:
        return f"http://{self.settings.NODE_HOST}:{self.settings.node_port(node_id)}"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def launch(self, ready_timeout: float = 10.0):
        """Start every node's server and wait until all are ready"""
        if self._servers:
            return

        for node_id, (value, is_faulty) in enumerate(zip(self.initial_values, self.faulty)):
            bundle = build_node(
                node_id=node_id,
                total_nodes=self.total_nodes,
                max_faulty=self.max_faulty,
                initial_value=value,
                is_faulty=is_faulty,
                settings=self.settings,
                seed=self.seed,
            )
            server = uvicorn.Server(uvicorn.Config(
                bundle.app,
                host=self.settings.NODE_HOST,
                port=bundle.port,
                log_config=None,
                lifespan="on",
            ))
            self.nodes.append(bundle)
            self._servers.append(server)
            self._server_tasks.append(asyncio.create_task(server.serve()))

        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        self._session = aiohttp.ClientSession(timeout=timeout)

        await self.wait_until_ready(ready_timeout)
        logger.info(f"Launched {self.total_nodes} nodes ({sum(self.faulty)} faulty), all ready")

    async def wait_until_ready(self, timeout: float = 10.0, poll_interval: float = 0.05):
        """
        Readiness gate: every node must answer /status.

        Raises:
            TimeoutError: If some node is not ready in time
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        pending = set(range(self.total_nodes))

        while pending:
            for node_id in sorted(pending):
                if self._servers[node_id].started and await self._answers_status(node_id):
                    pending.discard(node_id)
            if not pending:
                break
            if loop.time() >= deadline:
                raise TimeoutError(f"Nodes not ready after {timeout}s: {sorted(pending)}")
            await asyncio.sleep(poll_interval)

    async def _answers_status(self, node_id: int) -> bool:
        try:
            async with self._session.get(f"{self.node_url(node_id)}/status") as response:
                return response.status in (200, 500)
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return False

    async def shutdown(self):
        """Stop all servers and release the HTTP session"""
        for server in self._servers:
            server.should_exit = True
        if self._server_tasks:
            await asyncio.gather(*self._server_tasks, return_exceptions=True)
        if self._session is not None:
            await self._session.close()
            self._session = None

        self._servers.clear()
        self._server_tasks.clear()
        self.nodes.clear()
        logger.info("Network shut down")

    async def __aenter__(self) -> "NetworkLauncher":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    # =========================================================================
    # Control Surface Calls
    # =========================================================================

    async def _get_text(self, node_id: int, path: str) -> str:
        async with self._session.get(f"{self.node_url(node_id)}{path}") as response:
            return await response.text()

    async def start_consensus(self):
        """GET /start on every node"""
        await asyncio.gather(*[self._get_text(i, "/start") for i in range(self.total_nodes)])
        logger.info("Consensus started on all nodes")

    async def stop_all(self):
        """GET /stop on every node"""
        await asyncio.gather(*[self._get_text(i, "/stop") for i in range(self.total_nodes)])
        logger.info("Stop sent to all nodes")

    async def get_state(self, node_id: int) -> Dict[str, Any]:
        async with self._session.get(f"{self.node_url(node_id)}/getState") as response:
            response.raise_for_status()
            return await response.json()

    async def get_states(self) -> Dict[int, Dict[str, Any]]:
        states = await asyncio.gather(*[self.get_state(i) for i in range(self.total_nodes)])
        return dict(enumerate(states))

    async def wait_for_decision(
        self,
        timeout: float = 30.0,
        poll_interval: float = 0.1
    ) -> Dict[int, Dict[str, Any]]:
        """
        Poll until every non-faulty node has decided or been killed.

        Returns:
            Final states by node id (possibly undecided when timed out)
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            states = await self.get_states()
            if all_settled(states, self.faulty):
                return states
            if loop.time() >= deadline:
                logger.warning(f"Network did not settle within {timeout}s")
                return states
            await asyncio.sleep(poll_interval)


def all_settled(states: Dict[int, Dict[str, Any]], faulty: Sequence[bool]) -> bool:
    """True when every non-faulty node reports decided or killed"""
    return all(
        state["decided"] is True or state["killed"]
        for node_id, state in states.items()
        if not faulty[node_id]
    )


async def launch_network(
    initial_values: Sequence[int],
    faulty: Optional[Sequence[bool]] = None,
    max_faulty: int = 0,
    settings: Optional[Settings] = None,
    seed: Optional[int] = None
) -> NetworkLauncher:
    """Create and launch a network; the caller must shutdown() it"""
    launcher = NetworkLauncher(initial_values, faulty, max_faulty, settings=settings, seed=seed)
    await launcher.launch()
    return launcher
