"""
=============================================================================
CHIRPY
=============================================================================

A small HTTP service on a raw-socket, thread-pooled HTTP/1.1 server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ GET  /                     home document                             │
    │ GET  /app/*                static files, counted                     │
    │ GET  /api/healthz          "OK"                                      │
    │ POST /api/validate_chirp   length check + profanity redaction        │
    │ GET  /metrics              "Hits: n"                                 │
    │ POST /reset                hits back to 0                            │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE LAYOUT
=============================================================================

    chirpy/
    ├── core/         sockets, connections, worker pool
    ├── http/         request parser, responses, router
    ├── middleware/   access log, method guard, hit counting
    ├── handlers/     one handler per endpoint
    ├── chirps/       validation and profanity filtering
    ├── metrics.py    HitCounter
    ├── config.py     ServerConfig
    ├── server.py     HTTPServer lifecycle
    └── app.py        ApiConfig + create_app() route wiring

=============================================================================
USAGE
=============================================================================

    from chirpy import ServerConfig, create_app

    server = create_app(ServerConfig(port=8080, static_dir="./public"))
    server.run()              # blocks; call server.shutdown(5.0) elsewhere

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer, ServerClosedError
from .app import ApiConfig, create_app

__all__ = [
    "HTTPServer",
    "ServerClosedError",
    "ServerConfig",
    "ApiConfig",
    "create_app",
    "__version__",
]
