"""Node HTTP middleware package"""

from .correlation import (
    CorrelationIdMiddleware,
    CorrelationIdFilter,
    bind_node_id,
    correlation_id_var,
    get_correlation_id,
    outbound_headers,
)

__all__ = [
    "CorrelationIdMiddleware",
    "CorrelationIdFilter",
    "bind_node_id",
    "correlation_id_var",
    "get_correlation_id",
    "outbound_headers",
]
