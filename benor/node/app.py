# benor/node/app.py
"""
Node Control Surface - HTTP endpoints for one consensus node

Routes:
  GET  /status    500 "faulty" for faulty nodes, 200 "live" otherwise
  GET  /getState  node state snapshot (opaque for faulty nodes)
  GET  /stop      set the kill flag
  GET  /start     launch the round loop (once)
  POST /message   inbound vote {"round": int, "value": 0|1}
  GET  /health    engine diagnostics
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from benor import __version__
from benor.consensus import ConsensusEngine, VoteMessage
from benor.errors import InvalidMessage
from benor.middleware import CorrelationIdMiddleware
from benor.transport.base import Transport

logger = logging.getLogger("benor.node")


# =============================================================================
# Pydantic Models
# =============================================================================

class NodeStateResponse(BaseModel):
    """Node state as reported to orchestrators"""
    killed: bool
    estimate: Optional[int] = None
    decided: Optional[bool] = None
    round: Optional[int] = None


# =============================================================================
# Application Factory
# =============================================================================

def create_app(engine: ConsensusEngine, transport: Optional[Transport] = None) -> FastAPI:
    """
    Build the control surface for one node.

    The transport, when given, is started and stopped with the application;
    the engine is closed on shutdown.
    """
    app = FastAPI(
        title=f"Ben-Or Node {engine.node_id}",
        description="Randomized binary consensus participant",
        version=__version__
    )
    app.add_middleware(CorrelationIdMiddleware, node_id=engine.node_id)
    app.state.engine = engine
    app.state.transport = transport

    @app.on_event("startup")
    async def start_transport():
        if transport is not None:
            await transport.start()
        logger.info(f"Node {engine.node_id} control surface ready ({engine.status()})")

    @app.on_event("shutdown")
    async def stop_node():
        await engine.close()
        if transport is not None:
            await transport.stop()
        logger.info(f"Node {engine.node_id} control surface stopped")

    @app.exception_handler(InvalidMessage)
    async def invalid_message_handler(request: Request, exc: InvalidMessage):
        logger.warning(f"Node {engine.node_id} rejected vote: {exc.message}")
        return PlainTextResponse("Invalid message", status_code=400)

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------

    @app.get("/status", response_class=PlainTextResponse)
    async def status():
        """Liveness probe: faulty nodes answer with an error status"""
        if engine.is_faulty:
            return PlainTextResponse("faulty", status_code=500)
        return PlainTextResponse("live", status_code=200)

    @app.get("/getState", response_model=NodeStateResponse)
    async def get_state():
        return engine.get_state()

    @app.get("/stop", response_class=PlainTextResponse)
    async def stop():
        engine.stop()
        return "stopped"

    @app.get("/start", response_class=PlainTextResponse)
    async def start():
        engine.start()
        return "started"

    @app.post("/message", response_class=PlainTextResponse)
    async def message(request: Request):
        """Record a peer's vote; faulty nodes accept and ignore anything"""
        if engine.is_faulty:
            return "OK"

        try:
            payload = await request.json()
        except ValueError:
            raise InvalidMessage("Body is not valid JSON")

        vote = VoteMessage.from_dict(payload)
        await engine.deliver(vote.round, vote.value)
        return "OK"

    @app.get("/health")
    async def health():
        """Engine diagnostics (quorum, store retention, timing)"""
        return engine.get_status()

    return app
