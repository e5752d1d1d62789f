# benor/middleware/correlation.py
"""
Correlation ID Middleware
Tags every control-surface request, and every vote it causes a node to send,
with a traceable correlation ID so a round can be followed across nodes in
the logs.
"""

import uuid
import logging
from contextvars import ContextVar
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

HEADER_NAME = "X-Correlation-ID"

# Context variables (task-local under asyncio)
correlation_id_var: ContextVar[str] = ContextVar('correlation_id', default='no-corr-id')
node_id_var: ContextVar[str] = ContextVar('node_id', default='-')


def get_correlation_id() -> str:
    """Get current correlation ID from context"""
    return correlation_id_var.get()


def generate_correlation_id() -> str:
    """Generate a new correlation ID"""
    return f"corr-{uuid.uuid4().hex[:12]}"


def bind_node_id(node_id: Optional[int]) -> None:
    """Attach a node id to log records emitted from the current context"""
    node_id_var.set("-" if node_id is None else str(node_id))


def outbound_headers() -> Dict[str, str]:
    """Headers that carry the current correlation ID to a peer"""
    return {HEADER_NAME: get_correlation_id()}


class CorrelationIdFilter(logging.Filter):
    """Logging filter to inject correlation and node IDs into log records"""

    def filter(self, record):
        record.correlation_id = get_correlation_id()
        record.node_id = node_id_var.get()
        return True


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that ensures every request has a correlation ID.

    A vote arriving from a peer keeps the peer's ID, so the sender's
    broadcast and the receiver's delivery share one ID in the logs.
    """

    HEADER_NAME = HEADER_NAME

    def __init__(self, app, node_id: Optional[int] = None):
        super().__init__(app)
        self.node_id = node_id

    async def dispatch(self, request: Request, call_next) -> Response:
        # Extract or generate correlation ID
        corr_id = request.headers.get(self.HEADER_NAME)
        if not corr_id:
            corr_id = generate_correlation_id()

        token = correlation_id_var.set(corr_id)
        node_token = node_id_var.set("-" if self.node_id is None else str(self.node_id))

        try:
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = corr_id
            return response
        finally:
            node_id_var.reset(node_token)
            correlation_id_var.reset(token)
