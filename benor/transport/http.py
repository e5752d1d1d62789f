# benor/transport/http.py
"""
HTTP Transport - sends votes to peers' POST /message endpoint

Peers are addressed as http://{host}:{base_port + peer_id} unless an explicit
address was registered. Each request has its own timeout; every failure is
wrapped in TransportFailure for the engine's best-effort broadcast.
"""

import logging
from typing import Optional, Dict

import httpx

from benor.errors import TransportFailure
from benor.middleware.correlation import outbound_headers
from benor.transport.base import Transport

logger = logging.getLogger("benor.transport.http")


class HttpTransport(Transport):
    """Async httpx client delivering votes over HTTP"""

    def __init__(
        self,
        node_id: int,
        host: str = "localhost",
        base_port: int = 3000,
        timeout: float = 2.0,
        peer_addresses: Optional[Dict[int, str]] = None
    ):
        super().__init__(node_id)
        self.host = host
        self.base_port = base_port
        self.timeout = timeout
        self.peer_addresses: Dict[int, str] = dict(peer_addresses or {})
        self._client: Optional[httpx.AsyncClient] = None

    def register_peer(self, peer_id: int, base_url: str):
        """Override the address of one peer"""
        self.peer_addresses[peer_id] = base_url.rstrip("/")
        logger.debug(f"Peer {peer_id} registered at {base_url}")

    def peer_url(self, peer_id: int) -> str:
        """Base URL of a peer"""
        if peer_id in self.peer_addresses:
            return self.peer_addresses[peer_id]
        return f"http://{self.host}:{self.base_port + peer_id}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create httpx async client"""
        if self._client is None or self._client.is_closed:
            # No default timeout - each send sets its own
            self._client = httpx.AsyncClient()
        return self._client

    async def start(self):
        await self._get_client()
        logger.info(f"Node {self.node_id}: HTTP transport ready (base port {self.base_port})")

    async def stop(self):
        """Close the httpx client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug(f"Node {self.node_id}: HTTP transport closed")

    async def __aenter__(self) -> "HttpTransport":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def send(self, peer_id: int, round: int, value: int) -> None:
        url = f"{self.peer_url(peer_id)}/message"
        self.log_send(peer_id, round, value)

        try:
            client = await self._get_client()
            response = await client.post(
                url,
                json={"round": round, "value": value},
                headers=outbound_headers(),
                timeout=httpx.Timeout(self.timeout)
            )
            response.raise_for_status()

        except httpx.TimeoutException as e:
            raise TransportFailure(peer_id, f"timeout after {self.timeout}s", original_error=e)
        except httpx.HTTPStatusError as e:
            raise TransportFailure(
                peer_id,
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                original_error=e
            )
        except httpx.HTTPError as e:
            raise TransportFailure(peer_id, str(e) or type(e).__name__, original_error=e)
