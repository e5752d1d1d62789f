# benor/errors.py
"""
Error taxonomy for a consensus node.

All node errors share one envelope (message, error_code, context) so the
control surface and the launcher can report them uniformly.

  - InvalidMessage: malformed inbound vote, rejected at the boundary
  - TransportFailure: outbound delivery to a peer failed (always swallowed
    by the engine's best-effort broadcast)

Operations directed at a faulty node are not errors: they return normally
and have no effect.
"""

from typing import Optional, Dict, Any


class NodeError(Exception):
    """Base error envelope for consensus node failures"""

    def __init__(
        self,
        message: str,
        error_code: str = "NODE_ERROR",
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.original_error = original_error
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error dict for API responses"""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context
        }


class InvalidMessage(NodeError):
    """Inbound vote has a wrong type or an out-of-range value"""

    def __init__(self, message: str, round: Any = None, value: Any = None):
        super().__init__(
            message=message,
            error_code="INVALID_MESSAGE",
            context={"round": repr(round), "value": repr(value)}
        )


class TransportFailure(NodeError):
    """Vote could not be delivered to a peer"""

    def __init__(
        self,
        peer_id: int,
        reason: str,
        original_error: Optional[Exception] = None
    ):
        self.peer_id = peer_id
        super().__init__(
            message=f"Delivery to node {peer_id} failed: {reason}",
            error_code="TRANSPORT_FAILURE",
            original_error=original_error,
            context={"peer_id": peer_id, "reason": reason}
        )
