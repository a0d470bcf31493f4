"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing underneath the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  • Owns the listening socket (bind, listen, accept)                 │
    │  • Wraps each client socket in a Connection                         │
    │  • Closes the listener the moment shutdown begins                   │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ Hands off new connections
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          THREAD POOL                                 │
    │  • Bounded queue of accepted connections                            │
    │  • Workers scale between min_workers and max_workers                │
    │  • A full queue is reported to the caller (503)                     │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ Worker processes connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Buffered request reads (TCP is a stream, not messages)          │
    │  • Read, write and idle timeouts                                    │
    │  • Lock-guarded idle state so shutdown can close idle clients       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
