"""
Transport Module - outbound vote delivery between consensus nodes
Provides the abstract adapter and its HTTP and in-memory implementations.
"""

from .base import Transport
from .http import HttpTransport
from .memory import InMemoryNetwork, InMemoryTransport

__all__ = [
    "Transport",
    "HttpTransport",
    "InMemoryNetwork",
    "InMemoryTransport",
]
