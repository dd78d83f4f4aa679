"""peermap HTTP server.

Usage:
    # Start the server
    peermap serve --db geo.mmdb

    # Or with uvicorn directly
    uvicorn --factory peermap.server.app:create_app --port 8090
"""

from .app import create_app, run

__all__ = [
    "create_app",
    "run",
]
