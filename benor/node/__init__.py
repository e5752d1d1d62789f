"""Node Module - HTTP control surface and process entry point"""

from .app import create_app, NodeStateResponse
from .server import build_node, NodeBundle

__all__ = [
    "create_app",
    "NodeStateResponse",
    "build_node",
    "NodeBundle",
]
