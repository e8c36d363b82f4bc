"""
=============================================================================
CORE RUNTIME COMPONENTS
=============================================================================

Threads, sockets and the primitives that coordinate them:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SocketServer   listening socket + accept loop + signal handling    │
    │  Connection     buffered request reads on one client socket         │
    │  ThreadPool     bounded worker threads for connections              │
    │  Barrier        "all background tasks finished" counter             │
    └─────────────────────────────────────────────────────────────────────┘

SocketServer, Connection and ThreadPool serve the preview server.
Barrier is shared by the book builders, the sitemap task, the exporters
and the readiness logger.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool
from .sync import Barrier

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "Barrier",
]
