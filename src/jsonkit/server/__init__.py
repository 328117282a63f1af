"""HTTP and WebSocket server for jsonkit.

Serves directory listings and file operations over HTTP and pushes settled
change events to every connected client over /ws.
"""

from jsonkit.server.routes import build_scanner, create_app
from jsonkit.server.server import TreeServer
from jsonkit.server.websocket import ConnectionManager

__all__ = [
    "ConnectionManager",
    "TreeServer",
    "build_scanner",
    "create_app",
]
